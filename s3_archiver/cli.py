"""コマンドラインインターフェース"""
import argparse
import sys
from typing import List, Optional

from . import S3Archiver
from .errors import ArchiveError
from .models.config import ALGORITHMS, COMPRESSION_CHOICES, Config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3-archiver",
        description="Object storage maintenance tool",
    )
    subparsers = parser.add_subparsers(dest="command")

    archive = subparsers.add_parser(
        "archive", help="Archive small objects under a prefix into one TAR object"
    )
    archive.add_argument("--src", help="Source location (s3://bucket/prefix)")
    archive.add_argument("--dst", help="Destination location (s3://bucket/prefix)")
    archive.add_argument(
        "--cutoff",
        help="Only archive objects modified before this ISO-8601 timestamp",
    )
    archive.add_argument(
        "--buffer", type=int, default=None,
        help="Upload part size in bytes (default: 100MiB)",
    )
    archive.add_argument("--compression", choices=COMPRESSION_CHOICES, default=None)
    archive.add_argument(
        "--algorithm", choices=[a for a in ALGORITHMS if a != "none"], default=None,
        help="Compression algorithm (default: xz)",
    )
    archive.add_argument("--config", help="Path to a JSON configuration file")
    archive.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    archive.add_argument(
        "--no-preflight", action="store_true",
        help="Skip the size projection pass before uploading",
    )
    archive.add_argument("--no-progress", action="store_true", help="Disable progress display")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """メイン関数（終了コードを返す）"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != "archive":
        parser.print_help()
        return 2

    try:
        config = Config.from_args(args)
        summary = S3Archiver(config).run()
    except ArchiveError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1

    print(f"Archived {summary.objects_archived} objects to {summary.destination} "
          f"({summary.bytes_uploaded} bytes, {summary.objects_skipped} skipped)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
