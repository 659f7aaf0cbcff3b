"""S3クライアント管理"""
import boto3
from typing import Any, Dict
from botocore.config import Config as BotoConfig
from botocore.exceptions import NoCredentialsError
from ..models.config import AWSConfig
from ..utils.logger import LoggerManager


class S3ClientManager:
    """S3互換ストレージ用クライアントの作成と管理"""

    def __init__(self, aws_config: AWSConfig, max_attempts: int = 3):
        self.aws_config = aws_config
        self.max_attempts = max_attempts
        self.logger = LoggerManager.get_logger()
        self._client = None

    def get_client(self):
        """S3クライアントを取得（必要に応じて作成）"""
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _client_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            'region_name': self.aws_config.region,
            'config': BotoConfig(
                retries={'max_attempts': self.max_attempts, 'mode': 'standard'},
            ),
        }
        if self.aws_config.endpoint_url:
            kwargs['endpoint_url'] = self.aws_config.endpoint_url
        if self.aws_config.access_key_id:
            kwargs['aws_access_key_id'] = self.aws_config.access_key_id
            kwargs['aws_secret_access_key'] = self.aws_config.secret_access_key
        return kwargs

    def _create_client(self):
        """S3クライアントを作成"""
        try:
            kwargs = self._client_kwargs()
            if self.aws_config.profile and not self.aws_config.access_key_id:
                session = boto3.Session(profile_name=self.aws_config.profile)
                s3_client = session.client('s3', **kwargs)
                self.logger.info(f"S3 client created with profile '{self.aws_config.profile}'.")
            else:
                s3_client = boto3.client('s3', **kwargs)
                self.logger.info("S3 client created.")

            if self.aws_config.endpoint_url:
                self.logger.info(f"Using object storage endpoint: {self.aws_config.endpoint_url}")
            return s3_client

        except NoCredentialsError:
            self.logger.error("AWS credentials not available.")
            raise
        except Exception as e:
            self.logger.error(f"Error creating S3 client: {e}")
            raise
