"""オブジェクト情報とアーカイブ結果のデータクラス"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from ..errors import ConfigurationError


@dataclass(frozen=True)
class ObjectDescriptor:
    """一覧取得したソースオブジェクト"""
    key: str
    size: int
    last_modified: datetime


@dataclass
class ArchiveSummary:
    """アーカイブ実行結果"""
    bucket: str
    key: str
    objects_archived: int = 0
    objects_skipped: int = 0
    skipped_keys: List[str] = field(default_factory=list)
    source_bytes: int = 0
    bytes_uploaded: int = 0
    parts_uploaded: int = 0

    @property
    def destination(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


def parse_s3_url(url: str) -> Tuple[str, Optional[str]]:
    """s3://bucket/prefix を (bucket, prefix) に分解"""
    scheme, sep, rest = url.partition("://")
    if not sep:
        raise ConfigurationError(f"Invalid S3 URL: {url}")
    if scheme != "s3":
        raise ConfigurationError(f"Unsupported protocol: {scheme}")

    bucket, _, prefix = rest.partition("/")
    if not bucket:
        raise ConfigurationError(f"Missing bucket in S3 URL: {url}")

    return bucket, prefix or None
