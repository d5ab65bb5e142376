#!/usr/bin/env python3
"""
Upsert local files into a Google Cloud Storage bucket.

CLI wrapper for the GCPBucket facade with environment-based configuration
and optional image variants from a YAML preset file.

Usage:
    python scripts/upsert.py cat.jpg --folder avatars
    python scripts/upsert.py cat.jpg --folder avatars --preset-file presets.yaml --preset avatar
    python scripts/upsert.py *.png --folder icons --metadata owner=web
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from gcp_bucket import GCPBucket, LogicalFile, ResizeSpec
from gcp_bucket.errors import BucketHelperError
from gcp_bucket.utils.config import get_config
from gcp_bucket.utils.config_loader import build_resize_specs, load_config
from gcp_bucket.utils.logging import get_logger
from gcp_bucket.utils.metrics import start_metrics_server

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Upsert files into a Google Cloud Storage bucket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload one file into avatars/
  %(prog)s cat.jpg --folder avatars

  # Upload with resized variants from a preset file
  %(prog)s cat.jpg --folder avatars --preset-file presets.yaml --preset avatar

  # Upload with metadata
  %(prog)s report.pdf --folder docs --metadata owner=finance --metadata year=2026
        """,
    )

    parser.add_argument(
        "files",
        nargs="+",
        help="File(s) to upsert",
    )

    parser.add_argument(
        "-f",
        "--folder",
        required=True,
        help="Destination folder in the bucket",
    )

    parser.add_argument(
        "--preset-file",
        type=Path,
        help="YAML file with resize presets",
    )

    parser.add_argument(
        "--preset",
        help="Preset name to apply (requires --preset-file)",
    )

    parser.add_argument(
        "-m",
        "--metadata",
        action="append",
        help="Metadata key=value pairs (can specify multiple times)",
    )

    parser.add_argument(
        "--metrics-port",
        type=int,
        help="Expose Prometheus metrics on this port while uploading",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    args = parser.parse_args(argv)
    if args.preset and not args.preset_file:
        parser.error("--preset requires --preset-file")
    return args


def parse_metadata(metadata_args: List[str]) -> Dict[str, str]:
    """Parse metadata arguments into dictionary."""
    metadata: Dict[str, str] = {}
    for item in metadata_args:
        if "=" not in item:
            logger.warning(f"Invalid metadata format (use key=value): {item}")
            continue

        key, value = item.split("=", 1)
        metadata[key.strip()] = value.strip()

    return metadata


def build_logical_files(
    paths: List[Path],
    folder: str,
    metadata: Dict[str, str],
    resize_specs: Optional[List[ResizeSpec]],
) -> List[LogicalFile]:
    return [
        LogicalFile(
            folder_name=folder,
            file_name=path.name,
            file_data=path.read_bytes(),
            file_metadata=metadata,
            resize_options=resize_specs,
        )
        for path in paths
    ]


def print_progress(file_path: str, percentage: float) -> None:
    if percentage >= 100:
        print(f"  ✓ {file_path}")


async def run(args: argparse.Namespace) -> int:
    config = get_config()
    logger.info(f"Using GCS bucket: {config.bucket_name}")

    resize_specs = None
    if args.preset:
        resize_specs = build_resize_specs(load_config(args.preset_file), args.preset)

    paths = []
    for pattern in args.files:
        path = Path(pattern)
        if path.is_file():
            paths.append(path)
        else:
            print(f"⚠️  Skipping (not found or not a file): {pattern}")

    if not paths:
        print("❌ No valid files to upsert")
        return 1

    files = build_logical_files(paths, args.folder, parse_metadata(args.metadata or []), resize_specs)

    print(f"📤 Upserting {len(files)} file(s) to gs://{config.bucket_name}/{args.folder}")
    bucket = await GCPBucket.from_config(config)
    receipts = await bucket.upsert_many(files, progress_callback=print_progress)

    print(f"\n📊 {len(receipts)} object(s) written:")
    for receipt in receipts:
        print(f"  • {receipt.file_path} [{receipt.file_content_type or 'unknown'}] {receipt.file_url}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for upsert CLI."""
    args = parse_args(argv)

    if args.verbose:
        logging.getLogger("gcp_bucket").setLevel(logging.DEBUG)

    if args.metrics_port:
        start_metrics_server(port=args.metrics_port)

    try:
        return asyncio.run(run(args))

    except ValueError as e:
        print(f"❌ Configuration error: {e}")
        print("\nMake sure .env file exists with required variables:")
        print("  - GCS_BUCKET")
        return 1

    except FileNotFoundError as e:
        print(f"❌ {e}")
        return 1

    except BucketHelperError as e:
        logger.error(f"Upsert failed: {e}", exc_info=args.verbose)
        print(f"❌ Upsert failed: {e}")
        return 1

    except KeyboardInterrupt:
        print("\n⚠️  Upsert cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
