"""ストリーミング圧縮"""
import bz2
import lzma

from ..errors import ArchiveError
from ..models.config import CompressionConfig
from ..utils.logger import LoggerManager


BZIP2_LEVELS = {"fastest": 1, "best": 9}
XZ_PRESETS = {"fastest": 0, "best": 9 | lzma.PRESET_EXTREME}


class PassThroughWriter:
    """無圧縮時の恒等変換"""

    def __init__(self, writer):
        self.writer = writer
        self.bytes_in = 0
        self.bytes_out = 0

    def write(self, data) -> int:
        self.writer.write(data)
        self.bytes_in += len(data)
        self.bytes_out += len(data)
        return len(data)

    def close(self):
        self.writer.close()


class CompressorWriter:
    """書き込まれたデータを圧縮して下流のwriterへ渡す"""

    def __init__(self, writer, compressor):
        self.writer = writer
        self.compressor = compressor
        self.bytes_in = 0
        self.bytes_out = 0
        self._closed = False

    def _forward(self, data: bytes):
        if data:
            self.writer.write(data)
            self.bytes_out += len(data)

    def write(self, data) -> int:
        try:
            compressed = self.compressor.compress(data)
        except (lzma.LZMAError, ValueError) as e:
            raise ArchiveError(f"Compression failed: {e}", stage="compress") from e
        self.bytes_in += len(data)
        self._forward(compressed)
        return len(data)

    def close(self):
        """圧縮ストリームを終端してから下流を閉じる"""
        if self._closed:
            return
        self._closed = True
        try:
            tail = self.compressor.flush()
        except (lzma.LZMAError, ValueError) as e:
            raise ArchiveError(f"Compression flush failed: {e}", stage="compress") from e
        self._forward(tail)
        self.writer.close()


def make_compressor(writer, config: CompressionConfig):
    """設定に応じた圧縮ステージを作成"""
    logger = LoggerManager.get_logger()

    if not config.enabled:
        return PassThroughWriter(writer)

    if config.level == "best":
        logger.warning(
            f"Compression level 'best' for {config.algorithm} trades CPU time and memory "
            "for size (xz extreme presets can use up to ~1GiB of memory)"
        )

    if config.algorithm == "bzip2":
        compressor = bz2.BZ2Compressor(BZIP2_LEVELS[config.level])
    else:
        compressor = lzma.LZMACompressor(
            format=lzma.FORMAT_XZ, check=lzma.CHECK_CRC64, preset=XZ_PRESETS[config.level]
        )

    logger.info(f"Compressing archive with {config.algorithm} ({config.level})")
    return CompressorWriter(writer, compressor)
