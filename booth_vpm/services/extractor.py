"""
Archive extraction for downloaded Booth items.

Downloaded items are either a bare .unitypackage or a zip archive that holds
one or more of them, frequently with Shift_JIS/CP932 encoded member names.
The extractor streams every member to a working directory next to the
download, falls back to an external unzip command when the built-in reader
fails, and as a last resort hands back the archive itself so the caller can
still publish a minimal package.
"""
import asyncio
import logging
import shutil
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

import aiofiles

from booth_vpm.domain.encoding import decode_zip_entry
from booth_vpm.domain.models import RawPackage
from booth_vpm.domain.vpm_utils import validate_path_safety

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
UNITYPACKAGE_SUFFIX = ".unitypackage"
ZIP_SUFFIX = ".zip"
EXTRACTION_DIR_PREFIX = "extracted_"

# unzip exits with 1 when it only emitted warnings.
_UNZIP_MAX_OK_RETURNCODE = 1


class ExtractionError(Exception):
    """Raised when an archive could not be extracted by any means."""


@dataclass
class ExtractionResult:
    """
    Raw packages found for one item, plus the working directory backing them.

    The caller owns ``work_dir`` and must call ``cleanup()`` once every raw
    package has been converted.
    """

    packages: List[RawPackage] = field(default_factory=list)
    work_dir: Optional[Path] = None

    def cleanup(self) -> None:
        if self.work_dir is not None and self.work_dir.exists():
            shutil.rmtree(self.work_dir, ignore_errors=True)
            logger.debug(f"Removed extraction directory {self.work_dir}")


def _is_unitypackage(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() == UNITYPACKAGE_SUFFIX


def zip_contains_unitypackage(path: Path) -> bool:
    try:
        with zipfile.ZipFile(path) as zf:
            return any(
                name.lower().endswith(UNITYPACKAGE_SUFFIX) for name in zf.namelist()
            )
    except (OSError, zipfile.BadZipFile):
        return False


def find_raw_packages(root: Path) -> List[RawPackage]:
    """
    Locate raw packages below ``root``.

    All .unitypackage files are returned in path order. Only when there are
    none, nested zip archives that themselves hold a .unitypackage are
    returned as containers.
    """
    files = sorted(p for p in root.rglob("*") if p.is_file())

    packages = [
        RawPackage(path=p, display_name=p.name)
        for p in files
        if p.suffix.lower() == UNITYPACKAGE_SUFFIX
    ]
    if packages:
        return packages

    return [
        RawPackage(path=p, display_name=p.name)
        for p in files
        if p.suffix.lower() == ZIP_SUFFIX and zip_contains_unitypackage(p)
    ]


class ArchiveExtractor:
    def __init__(self, unzip_command: Optional[Sequence[str]] = None):
        self.unzip_command = list(unzip_command) if unzip_command else ["unzip", "-q", "-o"]

    @staticmethod
    def extraction_dir(archive_path: Path) -> Path:
        return archive_path.parent / f"{EXTRACTION_DIR_PREFIX}{archive_path.stem}"

    async def extract(self, archive_path: Path, display_name: str) -> ExtractionResult:
        """
        Extract ``archive_path`` and return the raw packages it holds.

        Never raises for a bad archive: if every extraction method fails, or
        the archive holds no raw package, the archive itself is returned as
        the only raw package.
        """
        original = RawPackage(path=archive_path, display_name=display_name)

        if archive_path.suffix.lower() != ZIP_SUFFIX:
            return ExtractionResult(packages=[original])

        work_dir = self.extraction_dir(archive_path)
        if work_dir.exists():
            existing = find_raw_packages(work_dir)
            if existing:
                logger.info(f"Reusing previous extraction of {display_name} in {work_dir}")
                return ExtractionResult(packages=existing, work_dir=work_dir)
            shutil.rmtree(work_dir)

        logger.info(f"Extracting {display_name} to {work_dir}")
        try:
            await self._extract_with_zipfile(archive_path, work_dir)
        except Exception as e:
            logger.warning(f"Built-in extraction of {display_name} failed ({e}); trying {self.unzip_command[0]}")
            shutil.rmtree(work_dir, ignore_errors=True)
            try:
                await self._extract_with_command(archive_path, work_dir)
            except ExtractionError as e:
                logger.error(f"Could not extract {display_name}: {e}. Using the archive as the package")
                shutil.rmtree(work_dir, ignore_errors=True)
                return ExtractionResult(packages=[original])

        packages = find_raw_packages(work_dir)
        if not packages:
            logger.warning(f"No unitypackage found in {display_name}; using the archive as the package")
            return ExtractionResult(packages=[original], work_dir=work_dir)

        logger.debug(f"Found raw packages in {display_name}: {[p.display_name for p in packages]}")
        return ExtractionResult(packages=packages, work_dir=work_dir)

    async def _extract_with_zipfile(self, archive_path: Path, dest: Path) -> None:
        with zipfile.ZipFile(archive_path, "r") as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue

                name = decode_zip_entry(info).replace("\\", "/")
                target = dest / name
                try:
                    validate_path_safety(target, dest)
                except ValueError:
                    logger.warning(f"Skipping unsafe archive entry {name!r} in {archive_path.name}")
                    continue

                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info, "r") as src:
                    async with aiofiles.open(target, "wb") as dst:
                        for chunk in iter(lambda: src.read(CHUNK_SIZE), b""):
                            await dst.write(chunk)
                logger.debug(f"Extracted {name}")

    async def _extract_with_command(self, archive_path: Path, dest: Path) -> None:
        dest.mkdir(parents=True, exist_ok=True)
        args = [*self.unzip_command, str(archive_path), "-d", str(dest)]
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExtractionError(f"cannot run {args[0]}: {e}") from e

        _, stderr = await process.communicate()
        if process.returncode is None or process.returncode > _UNZIP_MAX_OK_RETURNCODE:
            message = stderr.decode(errors="replace").strip()
            raise ExtractionError(f"{args[0]} exited with {process.returncode}: {message}")
