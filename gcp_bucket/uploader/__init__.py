"""
Google Cloud Storage uploader module.

Writes physical files to a bucket in fixed-size chunks with progress events,
name validation, and optional customer-supplied encryption.
"""

from .store import GCSBucket, GCSFile, GCSStore, GCSWriteStream, Store, StoreBucket, StoreFile, WriteStream
from .uploader import ChunkedUploader, ProgressCallback, UploadSession

__all__ = [
    "ChunkedUploader",
    "GCSBucket",
    "GCSFile",
    "GCSStore",
    "GCSWriteStream",
    "ProgressCallback",
    "Store",
    "StoreBucket",
    "StoreFile",
    "UploadSession",
    "WriteStream",
]
