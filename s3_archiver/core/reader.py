"""ソースオブジェクトの読み込み"""
from typing import Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import ArchiveError, ObjectMissingError, StoreUnavailableError
from ..models.objects import ObjectDescriptor
from ..utils.logger import LoggerManager
from ..utils.retry import retry_call
from .object_store import translate_error


class SourceStream:
    """オブジェクト本体を逐次読み込むストリーム

    read(n)はEOFでない限り必ずnバイトを返す。tarfileは短い読み込みを
    データ不足として扱うため、下位ストリームの部分読み込みをここで吸収する。
    読み込み途中の一時的な障害はreopenで読み込み位置から取り直す（最大max_resumes回）。
    """

    def __init__(
        self,
        body,
        key: str,
        size: int,
        reopen: Optional[Callable[[int], object]] = None,
        max_resumes: int = 0,
    ):
        self.body = body
        self.key = key
        self.size = size
        self.reopen = reopen
        self.max_resumes = max_resumes
        self.resumes = 0
        self.bytes_read = 0

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = self.size - self.bytes_read

        chunks = []
        remaining = size
        while remaining > 0:
            try:
                chunk = self.body.read(remaining)
            except (ArchiveError, BotoCoreError, ClientError, OSError) as e:
                error = translate_error(e, stage="read", key=self.key)
                if not self._can_resume(error):
                    if error is e:
                        raise
                    raise error from e
                self._resume(self.bytes_read + size - remaining, error)
                continue
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)

        data = b"".join(chunks)
        self.bytes_read += len(data)
        return data

    def _can_resume(self, error: ArchiveError) -> bool:
        return (
            isinstance(error, StoreUnavailableError)
            and self.reopen is not None
            and self.resumes < self.max_resumes
        )

    def _resume(self, offset: int, error: ArchiveError):
        self.resumes += 1
        LoggerManager.get_logger().warning(
            f"Read of {self.key} interrupted at byte {offset} "
            f"(resume {self.resumes}/{self.max_resumes}): {error}"
        )
        self.body.close()
        self.body = self.reopen(offset)

    def close(self):
        self.body.close()


class ObjectReader:
    """ディスクリプタからSourceStreamを開く"""

    def __init__(self, store, bucket: str, max_retries: int = 3, retry_base_delay: float = 1.0):
        self.store = store
        self.bucket = bucket
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.logger = LoggerManager.get_logger()

    def _fetch(self, key: str, start: int = 0):
        return retry_call(
            lambda: self.store.get_object(self.bucket, key, start=start),
            description=f"Fetching s3://{self.bucket}/{key}" + (f" from byte {start}" if start else ""),
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
        )

    def open(self, descriptor: ObjectDescriptor) -> SourceStream:
        body, content_length = self._fetch(descriptor.key)

        # 一覧取得後に上書きされたオブジェクトはヘッダーのサイズと一致しない
        if content_length != descriptor.size:
            body.close()
            raise ObjectMissingError(
                f"Object size changed since listing ({descriptor.size} -> {content_length})",
                stage="read",
                key=descriptor.key,
            )

        def reopen(offset: int):
            body, remaining = self._fetch(descriptor.key, start=offset)
            if remaining != descriptor.size - offset:
                body.close()
                raise ObjectMissingError(
                    f"Object size changed while reading ({remaining} bytes left at offset {offset})",
                    stage="read",
                    key=descriptor.key,
                )
            return body

        return SourceStream(
            body,
            descriptor.key,
            descriptor.size,
            reopen=reopen,
            max_resumes=self.max_retries,
        )
