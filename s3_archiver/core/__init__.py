"""S3 Archiver コアモジュール"""
from .s3_client import S3ClientManager
from .object_store import ObjectStore
from .lister import ObjectLister
from .reader import ObjectReader
from .framer import TarFramer
from .compressor import make_compressor
from .uploader import MultipartUploadSink
from .pipeline import ArchivePipeline

__all__ = [
    'S3ClientManager',
    'ObjectStore',
    'ObjectLister',
    'ObjectReader',
    'TarFramer',
    'make_compressor',
    'MultipartUploadSink',
    'ArchivePipeline',
]
