"""設定管理用のデータクラス"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import json
import os

from ..errors import ConfigurationError
from .objects import parse_s3_url


MiB = 1024 * 1024
GiB = 1024 * MiB
TiB = 1024 * GiB

ALGORITHMS = ("none", "bzip2", "xz")
LEVELS = ("fastest", "best")
COMPRESSION_CHOICES = ("none", "fastest", "best")


@dataclass
class LoggingConfig:
    """ロギング設定"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


@dataclass
class AWSConfig:
    """オブジェクトストレージ接続設定"""
    region: str = "us-east-1"
    profile: Optional[str] = None
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None

    def __post_init__(self):
        if bool(self.access_key_id) != bool(self.secret_access_key):
            raise ConfigurationError(
                "access_key_id and secret_access_key must be set together"
            )

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'AWSConfig':
        """環境変数から読み込み"""
        env = os.environ if environ is None else environ
        return cls(
            region=env.get("AWS_REGION", "us-east-1"),
            profile=env.get("AWS_PROFILE") or None,
            endpoint_url=env.get("OBJECT_STORAGE_ENDPOINT") or None,
            access_key_id=env.get("AWS_ACCESS_KEY") or None,
            secret_access_key=env.get("AWS_SECRET_KEY") or None,
        )


@dataclass(frozen=True)
class StoreLimits:
    """マルチパートアップロードの制約（S3の値がデフォルト）"""
    max_parts: int = 10000
    min_part_size: int = 5 * MiB
    max_part_size: int = 5 * GiB
    max_object_size: int = 5 * TiB

    def max_archive_size(self, buffer_size: int) -> int:
        """バッファサイズから決まるアーカイブの最大サイズ"""
        return min(buffer_size * self.max_parts, self.max_object_size)


@dataclass(frozen=True)
class CompressionConfig:
    """圧縮設定"""
    algorithm: str = "xz"
    level: str = "fastest"

    def __post_init__(self):
        if self.algorithm not in ALGORITHMS:
            raise ConfigurationError(
                f"Invalid compression algorithm: {self.algorithm}. "
                f"Must be one of {', '.join(ALGORITHMS)}"
            )
        if self.level not in LEVELS:
            raise ConfigurationError(
                f"Invalid compression level: {self.level}. Must be one of {', '.join(LEVELS)}"
            )

    @classmethod
    def from_choice(cls, choice: str, algorithm: str = "xz") -> 'CompressionConfig':
        """CLIの none|fastest|best をアルゴリズムと組み合わせる"""
        if choice not in COMPRESSION_CHOICES:
            raise ConfigurationError(
                f"Invalid compression: {choice}. Must be one of {', '.join(COMPRESSION_CHOICES)}"
            )
        if choice == "none":
            return cls(algorithm="none")
        return cls(algorithm=algorithm, level=choice)

    @property
    def enabled(self) -> bool:
        return self.algorithm != "none"

    @property
    def suffix(self) -> str:
        return {"none": ".tar", "bzip2": ".tar.bz2", "xz": ".tar.xz"}[self.algorithm]


@dataclass
class ArchiveOptions:
    """アーカイブオプション"""
    buffer_size: int = 100 * MiB
    compression: CompressionConfig = field(default_factory=CompressionConfig)
    max_retries: int = 3
    retry_base_delay: float = 1.0
    read_chunk_size: int = 1 * MiB
    preflight: bool = True
    enable_progress: bool = True
    exclude_patterns: List[str] = field(default_factory=list)
    limits: StoreLimits = field(default_factory=StoreLimits)

    def __post_init__(self):
        if isinstance(self.compression, dict):
            self.compression = CompressionConfig(**self.compression)
        elif isinstance(self.compression, str):
            self.compression = CompressionConfig.from_choice(self.compression)
        if isinstance(self.limits, dict):
            self.limits = StoreLimits(**self.limits)

        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.read_chunk_size <= 0:
            raise ConfigurationError(
                f"read_chunk_size must be positive, got {self.read_chunk_size}"
            )


@dataclass
class ArchiveTask:
    """アーカイブ対象（ソースと宛先）"""
    src: str
    dst: str
    cutoff: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.cutoff, str):
            self.cutoff = parse_cutoff(self.cutoff)
        if self.cutoff is not None and self.cutoff.tzinfo is None:
            raise ConfigurationError("cutoff must be timezone-aware")

        # URLの形式チェック
        parse_s3_url(self.src)
        parse_s3_url(self.dst)


@dataclass
class Config:
    """メイン設定クラス"""
    logging: LoggingConfig
    aws: AWSConfig
    options: ArchiveOptions
    task: Optional[ArchiveTask] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> 'Config':
        """辞書から読み込み（awsセクションがなければ環境変数）"""
        if "aws" in data:
            aws_config = AWSConfig(**data["aws"])
        else:
            aws_config = AWSConfig.from_env(environ)

        task_data = data.get("task")
        return cls(
            logging=LoggingConfig(**data.get("logging", {})),
            aws=aws_config,
            options=ArchiveOptions(**data.get("options", {})),
            task=ArchiveTask(**task_data) if task_data else None,
        )

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """設定ファイルから読み込み"""
        if not os.path.exists(config_path):
            raise ConfigurationError(f"Configuration file {config_path} not found.")

        try:
            with open(config_path, "r", encoding="utf-8") as file:
                data = json.load(file)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Error decoding JSON from {config_path}: {e}") from e

        try:
            return cls.from_dict(data)
        except TypeError as e:
            raise ConfigurationError(f"Error loading configuration: {e}") from e

    @classmethod
    def from_args(cls, args) -> 'Config':
        """CLI引数から作成（設定ファイルの値を引数で上書き）"""
        if getattr(args, "config", None):
            config = cls.from_file(args.config)
        else:
            config = cls.from_dict({})

        options = config.options
        if args.buffer is not None:
            options.buffer_size = args.buffer
        if args.compression is not None or args.algorithm is not None:
            algorithm = args.algorithm or (
                options.compression.algorithm if options.compression.enabled else "xz"
            )
            if args.compression is not None:
                choice = args.compression
            else:
                choice = options.compression.level if options.compression.enabled else "none"
            options.compression = CompressionConfig.from_choice(choice, algorithm)
        if args.no_preflight:
            options.preflight = False
        if args.no_progress:
            options.enable_progress = False
        if args.log_level:
            config.logging.level = args.log_level

        task = config.task
        src = args.src or (task.src if task else None)
        dst = args.dst or (task.dst if task else None)
        if not src or not dst:
            raise ConfigurationError("Both src and dst are required")
        cutoff = args.cutoff if args.cutoff is not None else (task.cutoff if task else None)
        config.task = ArchiveTask(src=src, dst=dst, cutoff=cutoff)

        return config


def parse_cutoff(value: str) -> datetime:
    """ISO-8601文字列をUTCのdatetimeに変換（タイムゾーンなしはUTC扱い）"""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        cutoff = datetime.fromisoformat(text)
    except ValueError as e:
        raise ConfigurationError(f"Invalid cutoff timestamp: {value}") from e

    if cutoff.tzinfo is None:
        cutoff = cutoff.replace(tzinfo=timezone.utc)
    return cutoff.astimezone(timezone.utc)
