"""TARアーカイブのストリーム生成"""
import tarfile
from typing import Optional

from ..errors import ArchiveError, ArchiveFramingError, UploadFailureError
from ..models.objects import ObjectDescriptor
from ..utils.logger import LoggerManager


def archive_name(key: str, prefix: Optional[str]) -> str:
    """キーからソースプレフィックスを除いたアーカイブ内パス"""
    name = key
    if prefix and key.startswith(prefix):
        name = key[len(prefix):]
    return name.lstrip("/")


class TarFramer:
    """tarfileのストリームモードでエントリーを書き込む

    ヘッダーはPAX形式（100文字を超えるキーもそのまま格納できる）。
    出力先のwriterはこのクラスが所有し、close()で閉じる。
    """

    def __init__(self, writer, prefix: Optional[str] = None, copy_bufsize: int = 1024 * 1024):
        self.writer = writer
        self.prefix = prefix
        self.logger = LoggerManager.get_logger()
        self.entries_written = 0
        self.content_bytes = 0
        self._tar = tarfile.open(
            fileobj=writer,
            mode="w|",
            format=tarfile.PAX_FORMAT,
            copybufsize=copy_bufsize,
        )
        self._closed = False

    def build_header(self, descriptor: ObjectDescriptor) -> tarfile.TarInfo:
        name = archive_name(descriptor.key, self.prefix)
        if not name:
            raise ArchiveFramingError("Empty archive name", stage="frame", key=descriptor.key)

        info = tarfile.TarInfo(name=name)
        info.size = descriptor.size
        info.mtime = int(descriptor.last_modified.timestamp())
        info.mode = 0o644
        info.type = tarfile.REGTYPE
        return info

    def add(self, descriptor: ObjectDescriptor, stream) -> tarfile.TarInfo:
        """ヘッダー、内容、パディングを書き込む"""
        if self._closed:
            raise ArchiveFramingError("Archive is already closed", stage="frame", key=descriptor.key)

        info = self.build_header(descriptor)

        try:
            self._tar.addfile(info, stream if info.size else None)
        except UploadFailureError:
            raise
        except (ArchiveError, OSError) as e:
            # ヘッダーは書き込み済みなのでアーカイブは修復できない
            raise ArchiveFramingError(
                f"Source stream failed after header was written: {e}",
                stage="frame",
                key=descriptor.key,
            ) from e

        bytes_read = getattr(stream, "bytes_read", info.size)
        if bytes_read != info.size:
            raise ArchiveFramingError(
                f"Header declared {info.size} bytes but {bytes_read} were written",
                stage="frame",
                key=descriptor.key,
            )

        self.entries_written += 1
        self.content_bytes += info.size
        self.logger.debug(f"Archived {descriptor.key} as {info.name} ({info.size} bytes)")
        return info

    def close(self):
        """終端ブロックを書き込み、下流のwriterを閉じる"""
        if self._closed:
            return
        self._closed = True
        self._tar.close()
        self.writer.close()

    def abort(self):
        """書き込み途中のアーカイブを破棄する

        tarfileのバッファに残ったバイトが後から（ガベージコレクション時を含む）
        下流へ書き込まれないよう、ストリームを閉じた状態にする。
        """
        if self._closed:
            return
        self._closed = True
        self._tar.closed = True
        self._tar.fileobj.closed = True
