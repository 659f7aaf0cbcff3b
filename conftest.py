"""テスト用の共通フィクスチャ"""
import io
from datetime import datetime, timezone

import pytest

from s3_archiver.errors import AccessDeniedError, ObjectMissingError, StoreUnavailableError
from s3_archiver.models.config import ArchiveOptions, CompressionConfig, StoreLimits
from s3_archiver.models.objects import ObjectDescriptor
from s3_archiver.utils.logger import LoggerManager


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class InterruptedBody(io.BytesIO):
    """指定オフセットに達すると一度だけ接続断を起こす本体"""

    def __init__(self, data: bytes, fail_at: int, key: str):
        super().__init__(data)
        self.fail_at = fail_at
        self.key = key

    def read(self, size=-1):
        position = self.tell()
        if position >= self.fail_at:
            raise StoreUnavailableError("connection reset", stage="read", key=self.key)
        if size is None or size < 0 or position + size > self.fail_at:
            size = self.fail_at - position
        return super().read(size)


class FakeObjectStore:
    """ObjectStoreと同じ操作を持つインメモリストア"""

    def __init__(self, page_size: int = 1000):
        self.page_size = page_size
        self.objects = {}
        self.uploads = {}
        self.completed = {}
        self.aborted = []
        self.calls = []
        self.upload_count = 0

        # 障害注入
        self.list_failures = 0
        self.list_error = StoreUnavailableError
        self.get_failures = {}
        self.missing_on_get = set()
        self.fail_reads_at = {}
        self.fail_part_numbers = set()
        self.part_failures = {}
        self.fail_complete = False

    def put(self, key: str, data: bytes, last_modified: datetime):
        self.objects[key] = (data, last_modified, len(data))

    def put_listed_only(self, key: str, size: int, last_modified: datetime):
        """一覧にだけ現れる（内容を持たない）オブジェクト"""
        self.objects[key] = (None, last_modified, size)

    def list_objects(self, bucket, prefix, continuation_token=None):
        self.calls.append(("list_objects", continuation_token))
        if self.list_failures:
            self.list_failures -= 1
            raise self.list_error("list failed", stage="list")

        keys = sorted(k for k in self.objects if k.startswith(prefix or ""))
        start = int(continuation_token or 0)
        page = keys[start:start + self.page_size]
        descriptors = [
            ObjectDescriptor(key=k, size=self.objects[k][2], last_modified=self.objects[k][1])
            for k in page
        ]
        next_index = start + self.page_size
        next_token = str(next_index) if next_index < len(keys) else None
        return descriptors, next_token

    def get_object(self, bucket, key, start=0):
        self.calls.append(("get_object", key, start) if start else ("get_object", key))
        if self.get_failures.get(key):
            self.get_failures[key] -= 1
            raise StoreUnavailableError("get failed", stage="read", key=key)
        if key in self.missing_on_get or key not in self.objects:
            raise ObjectMissingError("NoSuchKey", stage="read", key=key)
        data, _, size = self.objects[key]
        data = (data or b"")[start:]
        if key in self.fail_reads_at:
            return InterruptedBody(data, self.fail_reads_at.pop(key) - start, key), size - start
        return io.BytesIO(data), size - start

    def create_multipart_upload(self, bucket, key, content_type=None):
        self.upload_count += 1
        upload_id = f"upload-{self.upload_count}"
        self.calls.append(("create_multipart_upload", key))
        self.uploads[upload_id] = {"bucket": bucket, "key": key, "parts": {}, "content_type": content_type}
        return upload_id

    def upload_part(self, bucket, key, upload_id, part_number, data):
        self.calls.append(("upload_part", part_number))
        if part_number in self.fail_part_numbers:
            raise AccessDeniedError("part rejected", stage="upload", key=key)
        if self.part_failures.get(part_number):
            self.part_failures[part_number] -= 1
            raise StoreUnavailableError("part failed", stage="upload", key=key)
        etag = f'"etag-{part_number}"'
        self.uploads[upload_id]["parts"][part_number] = (etag, bytes(data))
        return etag

    def complete_multipart_upload(self, bucket, key, upload_id, parts):
        self.calls.append(("complete_multipart_upload", key))
        if self.fail_complete:
            raise StoreUnavailableError("complete failed", stage="upload", key=key)
        stored = self.uploads[upload_id]["parts"]
        assert [p["PartNumber"] for p in parts] == sorted(stored)
        body = b"".join(stored[p["PartNumber"]][1] for p in parts)
        self.completed[(bucket, key)] = body
        del self.uploads[upload_id]

    def abort_multipart_upload(self, bucket, key, upload_id):
        self.calls.append(("abort_multipart_upload", upload_id))
        self.aborted.append(upload_id)
        self.uploads.pop(upload_id, None)
        return True

    def part_sizes(self, upload_id):
        return [len(data) for _, data in self.uploads[upload_id]["parts"].values()]


@pytest.fixture(autouse=True)
def reset_logger():
    LoggerManager.reset()
    yield
    LoggerManager.reset()


@pytest.fixture
def store():
    return FakeObjectStore()


@pytest.fixture
def test_limits():
    return StoreLimits(max_parts=10000, min_part_size=1, max_part_size=1024 * 1024)


@pytest.fixture
def make_options(test_limits):
    def _make(buffer_size=1024, compression="none", **kwargs):
        kwargs.setdefault("retry_base_delay", 0)
        kwargs.setdefault("enable_progress", False)
        kwargs.setdefault("limits", test_limits)
        if isinstance(compression, str):
            compression = CompressionConfig.from_choice(compression)
        return ArchiveOptions(buffer_size=buffer_size, compression=compression, **kwargs)
    return _make
