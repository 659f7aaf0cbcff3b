"""アーカイブパイプラインの実行"""
import tarfile
from datetime import datetime, timezone
from typing import Optional

from ..errors import ArchiveError, ConfigurationError, ObjectMissingError, PartLimitExceededError
from ..models.config import ArchiveOptions, ArchiveTask, CompressionConfig
from ..models.objects import ArchiveSummary, parse_s3_url
from ..utils.logger import LoggerManager
from ..utils.progress import ArchiveProgress
from .compressor import make_compressor
from .framer import TarFramer
from .lister import ObjectLister
from .reader import ObjectReader
from .uploader import MultipartUploadSink


CONTENT_TYPES = {
    "none": "application/x-tar",
    "bzip2": "application/x-bzip2",
    "xz": "application/x-xz",
}


def destination_key(dst_prefix: Optional[str], stamp: datetime, compression: CompressionConfig) -> str:
    """宛先キー（<prefix>/archive_YYYYmmdd_HHMMSS.tar[.bz2|.xz]）"""
    name = f"archive_{stamp.strftime('%Y%m%d_%H%M%S')}{compression.suffix}"
    if not dst_prefix:
        return name
    if dst_prefix.endswith("/"):
        return f"{dst_prefix}{name}"
    return f"{dst_prefix}/{name}"


def projected_archive_size(object_count: int, total_size: int) -> int:
    """TARサイズの上限見積もり

    エントリーごとにヘッダー、PAX拡張ヘッダー、パディングで最大3ブロック、
    末尾に終端2ブロックとレコード境界までのパディングを見込む。
    """
    per_entry = 3 * tarfile.BLOCKSIZE
    return total_size + object_count * per_entry + 2 * tarfile.BLOCKSIZE + tarfile.RECORDSIZE


class ArchivePipeline:
    """一覧取得 → 読み込み → TAR → 圧縮 → マルチパートアップロード"""

    def __init__(
        self,
        store,
        task: ArchiveTask,
        options: ArchiveOptions,
        progress: Optional[ArchiveProgress] = None,
        now: Optional[datetime] = None,
    ):
        self.store = store
        self.task = task
        self.options = options
        self.progress = progress or ArchiveProgress(enabled=options.enable_progress)
        self.now = now or datetime.now(timezone.utc)
        self.logger = LoggerManager.get_logger()

        self.src_bucket, self.src_prefix = parse_s3_url(task.src)
        self.dst_bucket, self.dst_prefix = parse_s3_url(task.dst)
        self.dst_key = destination_key(
            self.dst_prefix, task.cutoff or self.now, options.compression
        )

    def validate(self):
        """実行前の設定チェック"""
        limits = self.options.limits
        buffer_size = self.options.buffer_size
        if not limits.min_part_size <= buffer_size <= limits.max_part_size:
            raise ConfigurationError(
                f"Buffer size {buffer_size} must be between {limits.min_part_size} "
                f"and {limits.max_part_size} bytes"
            )
        if self.task.cutoff is not None and self.task.cutoff.tzinfo is None:
            raise ConfigurationError("cutoff must be timezone-aware")

        self.logger.info(
            f"Maximum archive size with a {buffer_size} byte buffer: "
            f"{limits.max_archive_size(buffer_size)} bytes"
        )

    def _lister(self) -> ObjectLister:
        return ObjectLister(
            self.store,
            self.src_bucket,
            prefix=self.src_prefix,
            cutoff=self.task.cutoff,
            exclude_patterns=self.options.exclude_patterns,
            max_retries=self.options.max_retries,
            retry_base_delay=self.options.retry_base_delay,
        )

    def preflight(self):
        """アップロード開始前にアーカイブサイズが上限内か確認

        圧縮する場合の見積もりは圧縮前のサイズなので上限の目安にしかならない。
        その場合は警告のみとし、上限はアップロード側のパートごとの確認に任せる。
        """
        count, total_size = self._lister().preflight()
        projected = projected_archive_size(count, total_size)
        limits = self.options.limits
        limit = limits.max_archive_size(self.options.buffer_size)
        if projected <= limit:
            return

        if limit >= limits.max_object_size:
            hint = f"the maximum object size of {limits.max_object_size} bytes"
        else:
            hint = f"{limits.max_parts} parts of {self.options.buffer_size} bytes"

        if self.options.compression.enabled:
            self.logger.warning(
                f"Uncompressed archive size {projected} bytes exceeds the limit of {limit} bytes "
                f"({hint}); continuing because the {self.options.compression.algorithm} output size is checked per part"
            )
            return

        raise PartLimitExceededError(
            f"Projected archive size {projected} bytes exceeds the limit of {limit} bytes ({hint})",
            stage="preflight",
        )

    def _discard(self, framer: Optional[TarFramer], sink: MultipartUploadSink):
        """失敗時にアーカイブを破棄し、アップロードを中止する"""
        if framer is not None:
            framer.abort()
        sink.abort()

    def run(self) -> ArchiveSummary:
        self.validate()
        if self.options.preflight:
            self.preflight()

        summary = ArchiveSummary(bucket=self.dst_bucket, key=self.dst_key)
        self.logger.info(
            f"Archiving {self.task.src} -> {summary.destination}"
            + (f" (cutoff {self.task.cutoff.isoformat()})" if self.task.cutoff else "")
        )

        sink = MultipartUploadSink(
            self.store,
            self.dst_bucket,
            self.dst_key,
            self.options.buffer_size,
            limits=self.options.limits,
            max_retries=self.options.max_retries,
            retry_base_delay=self.options.retry_base_delay,
            progress_callback=self.progress,
            content_type=CONTENT_TYPES[self.options.compression.algorithm],
        )
        reader = ObjectReader(
            self.store,
            self.src_bucket,
            max_retries=self.options.max_retries,
            retry_base_delay=self.options.retry_base_delay,
        )

        framer = None
        try:
            compressor = make_compressor(sink, self.options.compression)
            framer = TarFramer(compressor, prefix=self.src_prefix, copy_bufsize=self.options.read_chunk_size)

            for descriptor in self._lister():
                try:
                    stream = reader.open(descriptor)
                except ObjectMissingError as e:
                    self.logger.warning(f"Skipping {descriptor.key}: {e}")
                    summary.objects_skipped += 1
                    summary.skipped_keys.append(descriptor.key)
                    self.progress.object_skipped()
                    continue

                try:
                    framer.add(descriptor, stream)
                finally:
                    stream.close()
                self.progress.object_archived(descriptor.size)

            framer.close()

        except ArchiveError as e:
            self._discard(framer, sink)
            self.logger.error(f"Archive failed: {e}")
            raise
        except Exception as e:
            self._discard(framer, sink)
            self.logger.error(f"Archive failed with unexpected error: {e}")
            raise ArchiveError(f"Unexpected error: {e}", stage="archive") from e
        except KeyboardInterrupt:
            self._discard(framer, sink)
            raise

        self.progress.complete()

        summary.objects_archived = framer.entries_written
        summary.source_bytes = framer.content_bytes
        summary.bytes_uploaded = sink.bytes_committed
        summary.parts_uploaded = len(sink.parts)

        self.logger.info(
            f"Archived {summary.objects_archived} objects ({summary.source_bytes} bytes) "
            f"into {summary.destination}: {summary.bytes_uploaded} bytes in "
            f"{summary.parts_uploaded} parts, {summary.objects_skipped} skipped"
        )
        return summary
