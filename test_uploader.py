"""マルチパートアップロードのテスト"""
import pytest

from s3_archiver.core.uploader import MultipartUploadSink
from s3_archiver.errors import PartLimitExceededError, UploadFailureError
from s3_archiver.models.config import StoreLimits


def make_sink(store, capacity=10, limits=None, **kwargs):
    kwargs.setdefault("retry_base_delay", 0)
    return MultipartUploadSink(
        store, "dst", "out/archive.tar", capacity,
        limits=limits or StoreLimits(min_part_size=1), **kwargs
    )


def test_parts_are_fixed_size_regardless_of_write_sizes(store):
    progress = []
    sink = make_sink(store, capacity=10, progress_callback=progress.append)

    for chunk in [b"abc", b"defghijklmnop", b"", b"q" * 12, b"r"]:
        sink.write(chunk)
        assert sink.bytes_buffered <= 10
    upload_id = sink.upload_id
    sink.close()

    assert progress == [10, 10, 9]
    assert [c for c in store.calls if c[0] == "upload_part"] == [
        ("upload_part", 1), ("upload_part", 2), ("upload_part", 3),
    ]
    assert store.completed[("dst", "out/archive.tar")] == b"abcdefghijklmnop" + b"q" * 12 + b"r"
    assert sink.completed
    assert upload_id not in store.uploads


def test_exact_multiple_does_not_upload_an_empty_tail(store):
    sink = make_sink(store, capacity=4)
    sink.write(b"12345678")
    sink.close()

    assert sink.parts == [
        {"PartNumber": 1, "ETag": '"etag-1"'},
        {"PartNumber": 2, "ETag": '"etag-2"'},
    ]


def test_empty_stream_uploads_single_empty_part(store):
    sink = make_sink(store)
    sink.close()

    assert len(sink.parts) == 1
    assert store.completed[("dst", "out/archive.tar")] == b""


def test_nothing_is_created_before_the_first_part(store):
    sink = make_sink(store, capacity=100)
    sink.write(b"small")

    assert store.calls == []
    sink.abort()
    assert store.aborted == []


def test_part_failure_aborts_session(store):
    store.fail_part_numbers.add(3)
    sink = make_sink(store, capacity=4)

    with pytest.raises(UploadFailureError) as excinfo:
        sink.write(b"x" * 20)
    assert excinfo.value.stage == "upload"
    assert store.aborted == ["upload-1"]
    assert store.completed == {}

    with pytest.raises(UploadFailureError):
        sink.write(b"more")
    sink.close()
    assert store.completed == {}


def test_transient_part_failure_is_retried(store):
    store.part_failures[2] = 2
    sink = make_sink(store, capacity=4, max_retries=2)
    sink.write(b"y" * 10)
    sink.close()

    assert store.completed[("dst", "out/archive.tar")] == b"y" * 10
    assert [c for c in store.calls if c[0] == "upload_part"].count(("upload_part", 2)) == 3


def test_completion_failure_aborts_session(store):
    store.fail_complete = True
    sink = make_sink(store, capacity=4)
    sink.write(b"z" * 6)

    with pytest.raises(UploadFailureError):
        sink.close()
    assert store.aborted == ["upload-1"]


def test_part_limit_is_enforced_before_upload(store):
    sink = make_sink(store, capacity=4, limits=StoreLimits(max_parts=2, min_part_size=1))

    with pytest.raises(PartLimitExceededError):
        sink.write(b"w" * 12)
    assert [c for c in store.calls if c[0] == "upload_part"] == [
        ("upload_part", 1), ("upload_part", 2),
    ]
    assert store.aborted == ["upload-1"]


def test_object_size_limit_is_enforced(store):
    limits = StoreLimits(max_parts=100, min_part_size=1, max_object_size=10)
    sink = make_sink(store, capacity=4, limits=limits)
    sink.write(b"v" * 8)

    with pytest.raises(PartLimitExceededError):
        sink.write(b"v" * 4)


def test_invalid_capacity():
    with pytest.raises(ValueError):
        MultipartUploadSink(None, "dst", "key", 0)
