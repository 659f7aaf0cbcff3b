"""マルチパートアップロード"""
from typing import Any, Callable, Dict, List, Optional

from ..errors import ArchiveError, PartLimitExceededError, UploadFailureError
from ..models.config import StoreLimits
from ..utils.logger import LoggerManager
from ..utils.retry import retry_call


class MultipartUploadSink:
    """書き込まれたバイト列を固定サイズのパートに分けてアップロード

    パートの境界はbuffer_capacityのみで決まり、上流のエントリーサイズには依存しない。
    アップロードはclose()でcompleteされるまで宛先に現れない。失敗時は必ずabortする。
    """

    def __init__(
        self,
        store,
        bucket: str,
        key: str,
        buffer_capacity: int,
        limits: Optional[StoreLimits] = None,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        progress_callback: Optional[Callable[[int], None]] = None,
        content_type: Optional[str] = None,
    ):
        if buffer_capacity <= 0:
            raise ValueError(f"buffer_capacity must be positive, got {buffer_capacity}")

        self.store = store
        self.bucket = bucket
        self.key = key
        self.buffer_capacity = buffer_capacity
        self.limits = limits or StoreLimits()
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.progress_callback = progress_callback
        self.content_type = content_type
        self.logger = LoggerManager.get_logger()

        self.upload_id: Optional[str] = None
        self.parts: List[Dict[str, Any]] = []
        self.bytes_committed = 0
        self.completed = False
        self.aborted = False
        self._buffer = bytearray()

    @property
    def bytes_buffered(self) -> int:
        return len(self._buffer)

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        if self.completed or self.aborted:
            raise UploadFailureError("Upload session is closed", stage="upload", key=self.key)

        view = memoryview(data)
        offset = 0
        while offset < len(view):
            space = self.buffer_capacity - len(self._buffer)
            chunk = view[offset:offset + space]
            self._buffer += chunk
            offset += len(chunk)
            if len(self._buffer) >= self.buffer_capacity:
                self._commit_part()
        return len(view)

    def _check_limits(self, part_number: int, part_size: int):
        if part_number > self.limits.max_parts:
            raise PartLimitExceededError(
                f"Archive exceeds {self.limits.max_parts} parts of {self.buffer_capacity} bytes; "
                "increase the buffer size",
                stage="upload",
                key=self.key,
            )
        if self.bytes_committed + part_size > self.limits.max_object_size:
            raise PartLimitExceededError(
                f"Archive exceeds maximum object size of {self.limits.max_object_size} bytes",
                stage="upload",
                key=self.key,
            )

    def _start(self):
        self.upload_id = retry_call(
            lambda: self.store.create_multipart_upload(self.bucket, self.key, self.content_type),
            description=f"Creating multipart upload for s3://{self.bucket}/{self.key}",
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
        )
        self.logger.info(f"Started multipart upload {self.upload_id} for s3://{self.bucket}/{self.key}")

    def _commit_part(self):
        """バッファを1パートとしてアップロード"""
        part_number = len(self.parts) + 1
        part = self._buffer
        self._buffer = bytearray()

        try:
            self._check_limits(part_number, len(part))
            if self.upload_id is None:
                self._start()
            etag = retry_call(
                lambda: self.store.upload_part(self.bucket, self.key, self.upload_id, part_number, part),
                description=f"Uploading part {part_number}",
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay,
            )
        except ArchiveError as e:
            self.abort()
            if isinstance(e, UploadFailureError):
                raise
            raise UploadFailureError(
                f"Part {part_number} upload failed: {e}", stage="upload", key=self.key
            ) from e

        self.parts.append({"PartNumber": part_number, "ETag": etag})
        self.bytes_committed += len(part)
        self.logger.info(f"Uploaded part {part_number} ({len(part)} bytes)")

        if self.progress_callback:
            self.progress_callback(len(part))

    def close(self):
        """残りのバッファを最終パートとしてアップロードし、completeする"""
        if self.completed or self.aborted:
            return

        # 空のアーカイブでも0バイトのパートを1つ作る
        if self._buffer or not self.parts:
            self._commit_part()

        try:
            self.store.complete_multipart_upload(self.bucket, self.key, self.upload_id, self.parts)
        except ArchiveError as e:
            self.abort()
            raise UploadFailureError(
                f"Completing multipart upload failed: {e}", stage="upload", key=self.key
            ) from e

        self.completed = True
        self.logger.info(
            f"Completed multipart upload of s3://{self.bucket}/{self.key}: "
            f"{len(self.parts)} parts, {self.bytes_committed} bytes"
        )

    def abort(self):
        """マルチパートアップロードを中断（何度呼んでもよい）"""
        if self.completed or self.aborted:
            return
        self.aborted = True
        self._buffer = bytearray()

        if self.upload_id is None:
            return
        self.logger.warning(f"Aborting multipart upload {self.upload_id} for s3://{self.bucket}/{self.key}")
        self.store.abort_multipart_upload(self.bucket, self.key, self.upload_id)
