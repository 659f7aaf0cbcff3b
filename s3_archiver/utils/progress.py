"""アーカイブ進捗管理"""
import threading
import time


class ArchiveProgress:
    """アーカイブ対象オブジェクトとアップロード済みバイト数を追跡"""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.objects_archived = 0
        self.objects_skipped = 0
        self.source_bytes = 0
        self.uploaded_bytes = 0
        self.parts_uploaded = 0
        self.lock = threading.Lock()
        self.start_time = time.time()

    def object_archived(self, size: int):
        with self.lock:
            self.objects_archived += 1
            self.source_bytes += size

    def object_skipped(self):
        with self.lock:
            self.objects_skipped += 1

    def __call__(self, bytes_transferred: int):
        """アップローダーのパート完了コールバックとして使用"""
        with self.lock:
            self.uploaded_bytes += bytes_transferred
            self.parts_uploaded += 1
            self._display_progress()

    def _display_progress(self):
        """進捗を表示"""
        if not self.enabled:
            return

        elapsed_time = time.time() - self.start_time
        if elapsed_time > 0:
            speed = self.uploaded_bytes / elapsed_time / 1024 / 1024  # MB/s
            print(f"\rObjects: {self.objects_archived} ({self.source_bytes} bytes) "
                  f"- Parts: {self.parts_uploaded} ({self.uploaded_bytes} bytes) "
                  f"- {speed:.2f} MB/s", end="", flush=True)

    def complete(self):
        """アップロード完了"""
        if not self.enabled:
            return
        elapsed_time = time.time() - self.start_time
        speed = self.uploaded_bytes / elapsed_time / 1024 / 1024 if elapsed_time > 0 else 0
        print(f"\rArchive complete! {self.objects_archived} objects "
              f"- {speed:.2f} MB/s - {elapsed_time:.1f}s")
