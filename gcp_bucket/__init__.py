"""
GCP Bucket Helper

Upserts files into a Google Cloud Storage bucket, deriving resized and
reformatted image variants on the way, with chunked uploads, progress
events, and name validation.

This package provides modular components for each stage:
- imaging: bytes/base64/blob normalization, content sniffing, Pillow resize
- variants: expansion of a logical file into its physical files
- uploader: chunked uploads and the backing-store adapter
- bucket: the GCPBucket facade
- utils: logging, configuration, presets, metrics
"""

__version__ = "0.1.0"

from gcp_bucket.utils.logging import setup_logging

# Initialize default logging configuration
setup_logging()

from gcp_bucket.bucket import GCPBucket  # noqa: E402
from gcp_bucket.errors import (  # noqa: E402
    BlobReadError,
    BucketHelperError,
    BucketNotFound,
    DecodeError,
    ImageProcessingError,
    InvalidInputKind,
    InvalidMetadata,
    InvalidName,
    NotAnImage,
    NotReady,
    ResizeOnNonImage,
    StorageError,
    UnsupportedFormat,
    UploadFailed,
)
from gcp_bucket.models import (  # noqa: E402
    Fit,
    FormatSpec,
    ImageMetadata,
    LogicalFile,
    PhysicalFile,
    ResizeOptions,
    ResizeSpec,
    ScaledImage,
    UploadProgress,
    UploadReceipt,
)
from gcp_bucket.uploader import GCSStore  # noqa: E402

__all__ = [
    "BlobReadError",
    "BucketHelperError",
    "BucketNotFound",
    "DecodeError",
    "Fit",
    "FormatSpec",
    "GCPBucket",
    "GCSStore",
    "ImageMetadata",
    "ImageProcessingError",
    "InvalidInputKind",
    "InvalidMetadata",
    "InvalidName",
    "LogicalFile",
    "NotAnImage",
    "NotReady",
    "PhysicalFile",
    "ResizeOnNonImage",
    "ResizeOptions",
    "ResizeSpec",
    "ScaledImage",
    "StorageError",
    "UnsupportedFormat",
    "UploadFailed",
    "UploadProgress",
    "UploadReceipt",
    "setup_logging",
]
