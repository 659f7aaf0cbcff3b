"""S3互換ストレージ操作（botocoreの例外をエラー分類に変換）"""
from typing import Any, Dict, List, Optional, Tuple

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
)

from ..errors import (
    AccessDeniedError,
    ArchiveError,
    ObjectMissingError,
    StoreUnavailableError,
)
from ..models.objects import ObjectDescriptor
from ..utils.logger import LoggerManager


ACCESS_DENIED_CODES = {
    "AccessDenied",
    "AllAccessDisabled",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "InvalidToken",
}
MISSING_CODES = {"NoSuchKey", "NotFound", "404", "PreconditionFailed"}
TRANSIENT_CODES = {
    "InternalError",
    "ServiceUnavailable",
    "SlowDown",
    "RequestTimeout",
    "RequestTimeTooSkewed",
    "Throttling",
    "ThrottlingException",
}


def translate_error(error: Exception, stage: str, key: Optional[str] = None) -> ArchiveError:
    """botocoreの例外をArchiveErrorのサブクラスに変換"""
    if isinstance(error, ArchiveError):
        return error

    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        message = f"{error.operation_name} failed: {code or status}"

        if code in ACCESS_DENIED_CODES or status == 403:
            return AccessDeniedError(message, stage=stage, key=key)
        if code == "NoSuchBucket":
            return ArchiveError(message, stage=stage, key=key)
        if code in MISSING_CODES or status in (404, 412):
            return ObjectMissingError(message, stage=stage, key=key)
        if code in TRANSIENT_CODES or status >= 500:
            return StoreUnavailableError(message, stage=stage, key=key)
        return ArchiveError(message, stage=stage, key=key)

    if isinstance(error, NoCredentialsError):
        return AccessDeniedError(str(error), stage=stage, key=key)
    if isinstance(error, (BotoConnectionError, HTTPClientError)):
        return StoreUnavailableError(str(error), stage=stage, key=key)
    if isinstance(error, BotoCoreError):
        return ArchiveError(str(error), stage=stage, key=key)
    if isinstance(error, (ConnectionError, TimeoutError)):
        return StoreUnavailableError(str(error), stage=stage, key=key)
    return ArchiveError(f"Unexpected error: {error}", stage=stage, key=key)


class ObjectStore:
    """アーカイブ処理に必要なS3操作のみを提供"""

    def __init__(self, s3_client):
        self.s3_client = s3_client
        self.logger = LoggerManager.get_logger()

    def list_objects(
        self, bucket: str, prefix: Optional[str], continuation_token: Optional[str] = None
    ) -> Tuple[List[ObjectDescriptor], Optional[str]]:
        """1ページ分のオブジェクト一覧と次のトークンを取得"""
        params: Dict[str, Any] = {"Bucket": bucket}
        if prefix:
            params["Prefix"] = prefix
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        try:
            response = self.s3_client.list_objects_v2(**params)
        except (BotoCoreError, ClientError) as e:
            raise translate_error(e, stage="list") from e

        descriptors = [
            ObjectDescriptor(
                key=obj["Key"],
                size=obj["Size"],
                last_modified=obj["LastModified"],
            )
            for obj in response.get("Contents", [])
        ]
        next_token = response.get("NextContinuationToken") if response.get("IsTruncated") else None
        return descriptors, next_token

    def get_object(self, bucket: str, key: str, start: int = 0):
        """オブジェクト本体のストリームとContent-Lengthを取得

        startを指定した場合はそのオフセット以降のみを取得する（Content-Lengthは残りのバイト数）。
        """
        params: Dict[str, Any] = {"Bucket": bucket, "Key": key}
        if start > 0:
            params["Range"] = f"bytes={start}-"
        try:
            response = self.s3_client.get_object(**params)
        except (BotoCoreError, ClientError) as e:
            raise translate_error(e, stage="read", key=key) from e
        return response["Body"], response["ContentLength"]

    def create_multipart_upload(self, bucket: str, key: str, content_type: Optional[str] = None) -> str:
        params: Dict[str, Any] = {"Bucket": bucket, "Key": key}
        if content_type:
            params["ContentType"] = content_type
        try:
            response = self.s3_client.create_multipart_upload(**params)
        except (BotoCoreError, ClientError) as e:
            raise translate_error(e, stage="upload", key=key) from e
        return response["UploadId"]

    def upload_part(self, bucket: str, key: str, upload_id: str, part_number: int, data: bytes) -> str:
        """1パートをアップロードしてETagを返す"""
        try:
            response = self.s3_client.upload_part(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=data,
            )
        except (BotoCoreError, ClientError) as e:
            raise translate_error(e, stage="upload", key=key) from e
        return response["ETag"]

    def complete_multipart_upload(
        self, bucket: str, key: str, upload_id: str, parts: List[Dict[str, Any]]
    ):
        try:
            self.s3_client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except (BotoCoreError, ClientError) as e:
            raise translate_error(e, stage="upload", key=key) from e

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> bool:
        """ベストエフォートで中断（例外は送出しない）"""
        try:
            self.s3_client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
            return True
        except (BotoCoreError, ClientError) as e:
            self.logger.error(f"Failed to abort multipart upload {upload_id} for {key}: {e}")
            return False
