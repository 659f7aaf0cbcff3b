"""アーカイブ処理のエラー定義"""
from typing import Optional


class ArchiveError(Exception):
    """アーカイブ処理の基底エラー"""

    def __init__(self, message: str, stage: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        self.stage = stage
        self.key = key

    def __str__(self) -> str:
        message = super().__str__()
        if self.key:
            message = f"{message} (key: {self.key})"
        if self.stage:
            message = f"[{self.stage}] {message}"
        return message


class ConfigurationError(ArchiveError):
    """設定値が不正"""


class StoreUnavailableError(ArchiveError):
    """一時的なネットワーク/サービス障害（リトライ対象）"""


class AccessDeniedError(ArchiveError):
    """アクセス拒否（リトライしない）"""


class ObjectMissingError(ArchiveError):
    """一覧取得後にオブジェクトが削除・変更された"""


class ArchiveFramingError(ArchiveError):
    """TARのヘッダーと内容の不整合"""


class UploadFailureError(ArchiveError):
    """マルチパートアップロードの失敗"""


class PartLimitExceededError(UploadFailureError):
    """パート数またはオブジェクトサイズの上限超過"""
