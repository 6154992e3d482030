"""Command-line interface for the Booth VPM repository.

Subcommands:
  convert  convert downloaded items listed in products.json into VPM packages
  stats    print repository statistics
  serve    serve the repository over HTTP
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from booth_vpm.core.config import Settings
from booth_vpm.domain.models import BoothProduct, RepositoryStats
from booth_vpm.services.converter import VpmConverter
from booth_vpm.storage.json_manifest_store import JsonManifestStore
from booth_vpm.storage.manifest_store import RepositoryStoreError

logger = logging.getLogger(__name__)

_PRODUCTS_ADAPTER = TypeAdapter(List[BoothProduct])


def load_products(path: Path) -> List[BoothProduct]:
    """Read the scraper's products.json.

    Raises:
        OSError: If the file cannot be read
        ValidationError: If the document is not a list of products
    """
    return _PRODUCTS_ADAPTER.validate_json(path.read_bytes())


def print_stats(stats: RepositoryStats) -> None:
    print(f"Packages: {stats.total_packages}")
    print(f"Versions: {stats.total_versions}")
    for package in stats.packages:
        print(f"  {package.name}: {', '.join(package.versions)}")


def cmd_convert(args: argparse.Namespace, settings: Settings) -> int:
    products_path = Path(args.products) if args.products else settings.products_path
    try:
        products = load_products(products_path)
    except (OSError, ValidationError) as e:
        print(f"Error: Cannot read products file {products_path}: {e}", file=sys.stderr)
        return 1

    converter = VpmConverter(settings)
    try:
        asyncio.run(converter.convert_products(products))
    except RepositoryStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if settings.vpm_enabled:
        print_stats(converter.store.stats())
    return 0


def cmd_stats(args: argparse.Namespace, settings: Settings) -> int:
    store = JsonManifestStore(settings.repository_dir, base_url=settings.base_url)
    try:
        store.load()
    except RepositoryStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print_stats(store.stats())
    return 0


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    uvicorn.run("booth_vpm.main:app", host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="booth-vpm",
        description="Build and serve a VPM repository from purchased Booth items",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert everything listed in products.json
  VPM_ENABLED=true booth-vpm convert --products data/products.json

  # Serve the repository for VPM clients
  VPM_BASE_URL=http://localhost:8000 booth-vpm serve --port 8000
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    convert = subparsers.add_parser("convert", help="Convert downloaded items into VPM packages")
    convert.add_argument("--products", help="Path to products.json (default: $PRODUCTS_PATH)")
    convert.set_defaults(handler=cmd_convert)

    stats = subparsers.add_parser("stats", help="Print repository statistics")
    stats.set_defaults(handler=cmd_stats)

    serve = subparsers.add_parser("serve", help="Serve the repository over HTTP")
    serve.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    serve.set_defaults(handler=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the booth-vpm command."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    return args.handler(args, Settings.from_env())


if __name__ == "__main__":
    sys.exit(main())
