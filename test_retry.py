"""リトライ処理のテスト"""
import pytest

from s3_archiver.errors import AccessDeniedError, StoreUnavailableError
from s3_archiver.utils.retry import retry_call


class Flaky:
    def __init__(self, failures, error=StoreUnavailableError):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error("temporarily unavailable", stage="list")
        return "ok"


def test_backoff_doubles_until_success():
    waits = []
    func = Flaky(failures=3)

    assert retry_call(func, "Listing", max_retries=3, base_delay=0.5, sleep=waits.append) == "ok"
    assert func.calls == 4
    assert waits == [0.5, 1.0, 2.0]


def test_gives_up_after_max_retries():
    waits = []
    func = Flaky(failures=5)

    with pytest.raises(StoreUnavailableError):
        retry_call(func, "Listing", max_retries=2, base_delay=1.0, sleep=waits.append)
    assert func.calls == 3
    assert waits == [1.0, 2.0]


def test_other_errors_are_not_retried():
    waits = []
    func = Flaky(failures=1, error=AccessDeniedError)

    with pytest.raises(AccessDeniedError):
        retry_call(func, "Listing", max_retries=3, sleep=waits.append)
    assert func.calls == 1
    assert waits == []
