"""一時的な障害に対するリトライ"""
import time
from typing import Callable, TypeVar

from ..errors import StoreUnavailableError
from .logger import LoggerManager

T = TypeVar("T")


def retry_call(
    func: Callable[[], T],
    description: str,
    max_retries: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """StoreUnavailableErrorのみ指数バックオフでリトライ

    それ以外の例外（アクセス拒否、フレーミング異常など）はそのまま送出する。
    """
    logger = LoggerManager.get_logger()
    attempt = 0

    while True:
        try:
            return func()
        except StoreUnavailableError as e:
            if attempt >= max_retries:
                logger.error(f"{description} failed after {max_retries + 1} attempts: {e}")
                raise
            wait_time = base_delay * (2 ** attempt)
            attempt += 1
            logger.warning(
                f"{description} failed (attempt {attempt}/{max_retries + 1}), "
                f"retrying in {wait_time:.1f}s: {e}"
            )
            sleep(wait_time)
