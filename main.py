#!/usr/bin/env python3
"""S3 Archiver - エントリーポイント"""
import sys

from s3_archiver.cli import main


if __name__ == "__main__":
    sys.exit(main())
