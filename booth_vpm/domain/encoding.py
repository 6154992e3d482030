"""
Filename decoding for archive entries.

Booth archives are frequently authored on Japanese Windows, so entry names in
the zip directory table are often Shift_JIS/CP932 bytes without the UTF-8 flag.
Each candidate encoding is tried in order and the first decoding that reads as
clean native text wins.
"""
from __future__ import annotations

import os
import unicodedata
import zipfile
from typing import Optional

CANDIDATE_ENCODINGS = ("utf-8", "shift_jis", "cp932", "euc_jp")

# Character sequences that show up when bytes are decoded with the wrong codec.
MOJIBAKE_MARKERS = ("\ufffd", "縺", "繧", "繝", "ã", "Ã", "â€")

# Zip general purpose flag bit 11: filename is UTF-8.
_UTF8_FLAG = 0x800

_NATIVE_RANGES = (
    (0x3040, 0x309F),  # Hiragana
    (0x30A0, 0x30FF),  # Katakana
    (0x3400, 0x4DBF),  # CJK extension A
    (0x4E00, 0x9FFF),  # CJK unified ideographs
    (0xF900, 0xFAFF),  # CJK compatibility ideographs
    (0xFF01, 0xFF60),  # Fullwidth ASCII variants
    (0xFF61, 0xFF9F),  # Halfwidth katakana
)


def _in_ranges(code: int, ranges) -> bool:
    return any(start <= code <= end for start, end in ranges)


def is_native_char(char: str) -> bool:
    return _in_ranges(ord(char), _NATIVE_RANGES)


def is_control_char(char: str) -> bool:
    """True for control, format, private-use and unassigned code points."""
    return unicodedata.category(char).startswith("C")


def try_decode(raw: bytes, encoding: str) -> Optional[str]:
    """
    Decode raw bytes strictly with a single candidate encoding.

    Returns None if the bytes are invalid for the encoding, or if the result
    contains replacement/mojibake markers or control characters.
    """
    try:
        text = raw.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        return None

    if any(marker in text for marker in MOJIBAKE_MARKERS):
        return None
    if any(is_control_char(c) for c in text):
        return None
    return text


def decode_entry_name(raw: bytes, utf8: bool = False) -> str:
    """
    Turn a raw zip entry name into a display-quality string.

    ASCII names are returned as-is, and so is any name that decodes as UTF-8
    when the archive flags it as such. Otherwise the candidate encodings are
    tried in order and the first one producing native-script text is
    accepted. If none validate, the raw bytes are kept unmodified
    (surrogate-escaped, so they round-trip to the filesystem).
    """
    try:
        return raw.decode("ascii")
    except UnicodeDecodeError:
        pass

    if utf8:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            pass

    for encoding in CANDIDATE_ENCODINGS:
        text = try_decode(raw, encoding)
        if text is not None and any(is_native_char(c) for c in text):
            return text

    return os.fsdecode(raw)


def has_utf8_flag(info: zipfile.ZipInfo) -> bool:
    return bool(info.flag_bits & _UTF8_FLAG)


def raw_entry_name(info: zipfile.ZipInfo) -> bytes:
    """
    Recover the bytes stored in the zip directory table for an entry.

    zipfile decodes names as UTF-8 when flag bit 11 is set and as CP437
    otherwise; CP437 maps every byte, so encoding back is lossless.
    """
    if has_utf8_flag(info):
        return info.filename.encode("utf-8")
    return info.filename.encode("cp437")


def decode_zip_entry(info: zipfile.ZipInfo) -> str:
    """Display name of a zip entry, honoring the archive's UTF-8 flag."""
    return decode_entry_name(raw_entry_name(info), utf8=has_utf8_flag(info))
