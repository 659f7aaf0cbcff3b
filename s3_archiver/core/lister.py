"""ソースオブジェクトの一覧取得"""
import fnmatch
import posixpath
from datetime import datetime
from typing import Generator, List, Optional, Tuple

from ..models.objects import ObjectDescriptor
from ..utils.logger import LoggerManager
from ..utils.retry import retry_call


class ObjectLister:
    """プレフィックス配下のオブジェクトをページングしながら列挙"""

    def __init__(
        self,
        store,
        bucket: str,
        prefix: Optional[str] = None,
        cutoff: Optional[datetime] = None,
        exclude_patterns: Optional[List[str]] = None,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
    ):
        self.store = store
        self.bucket = bucket
        self.prefix = prefix or ""
        self.cutoff = cutoff
        self.exclude_patterns = exclude_patterns or []
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.logger = LoggerManager.get_logger()

    def qualifies(self, descriptor: ObjectDescriptor) -> bool:
        """カットオフと除外パターンの判定"""
        if self.cutoff is not None and not descriptor.last_modified < self.cutoff:
            return False
        # フォルダーマーカーとプレフィックス自身はアーカイブ名を持たない
        if descriptor.key.endswith("/") or descriptor.key == self.prefix:
            return False
        return not self.should_exclude(descriptor.key)

    def should_exclude(self, key: str) -> bool:
        """キーが除外パターンに一致するかチェック"""
        name = posixpath.basename(key)
        for pattern in self.exclude_patterns:
            if fnmatch.fnmatch(name, pattern) or fnmatch.fnmatch(key, pattern):
                return True
        return False

    def _fetch_page(self, token: Optional[str], page: int):
        return retry_call(
            lambda: self.store.list_objects(self.bucket, self.prefix, token),
            description=f"Listing page {page} of s3://{self.bucket}/{self.prefix}",
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
        )

    def __iter__(self) -> Generator[ObjectDescriptor, None, None]:
        token = None
        page = 1
        while True:
            descriptors, token = self._fetch_page(token, page)
            self.logger.debug(f"Listed page {page}: {len(descriptors)} objects")

            for descriptor in descriptors:
                if self.qualifies(descriptor):
                    yield descriptor

            if token is None:
                break
            page += 1

    def preflight(self) -> Tuple[int, int]:
        """一覧を一度走査して対象オブジェクト数と合計サイズを返す"""
        count = 0
        total_size = 0
        for descriptor in self:
            count += 1
            total_size += descriptor.size
        self.logger.info(
            f"Preflight: {count} objects ({total_size} bytes) qualify under "
            f"s3://{self.bucket}/{self.prefix}"
        )
        return count, total_size
