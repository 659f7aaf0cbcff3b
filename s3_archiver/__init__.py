"""S3 Archiver パッケージ"""
from .errors import ArchiveError, ConfigurationError
from .models.config import Config
from .models.objects import ArchiveSummary
from .utils.logger import LoggerManager
from .core.s3_client import S3ClientManager
from .core.object_store import ObjectStore
from .core.pipeline import ArchivePipeline


class S3Archiver:
    """小さなオブジェクトを1つのアーカイブにまとめるメインクラス"""

    def __init__(self, config: Config, store=None):
        self.config = config

        # ロガーをセットアップ
        self.logger = LoggerManager.setup(self.config.logging)
        self.logger.info("S3 Archiver initialized")

        if store is None:
            client_manager = S3ClientManager(config.aws)
            store = ObjectStore(client_manager.get_client())
        self.store = store

    def run(self) -> ArchiveSummary:
        """アーカイブタスクを実行"""
        if self.config.task is None:
            raise ConfigurationError("No archive task configured (src and dst are required)")
        self.logger.info("Starting S3 archive process...")
        pipeline = ArchivePipeline(self.store, self.config.task, self.config.options)
        return pipeline.run()


__all__ = ['S3Archiver', 'Config', 'ArchiveSummary', 'ArchiveError']
