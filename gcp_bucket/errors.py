"""Error types raised by the bucket helper."""

from typing import Optional


class BucketHelperError(Exception):
    """Base class for bucket helper errors."""


# ============================================================================
# Input errors
# ============================================================================

class InvalidInputKind(BucketHelperError):
    """File data is not bytes, base64 text, or a readable blob."""

    def __init__(self, message: str = "Invalid file data. Provide bytes, base64 text, or a blob."):
        super().__init__(message)


class BlobReadError(BucketHelperError):
    """Reading a blob-like source into bytes failed."""

    def __init__(self, message: str):
        super().__init__(f"Failed to convert blob to bytes: {message}")


class InvalidMetadata(BucketHelperError):
    """Object metadata is not a mapping of strings to strings."""


# ============================================================================
# Image errors
# ============================================================================

class ResizeOnNonImage(BucketHelperError):
    """Resize was requested for content that is not an image."""

    def __init__(self, file_name: str):
        super().__init__(f"Is not possible to resize a non-image file: {file_name}")
        self.file_name = file_name


class NotAnImage(BucketHelperError):
    """An image operation received content that is not an image."""

    def __init__(self, message: str = "The file is not an image."):
        super().__init__(message)


class ImageProcessingError(BucketHelperError):
    """Base class for image decode/encode failures."""


class UnsupportedFormat(ImageProcessingError):
    """Output format is unknown or has no available encoder."""

    def __init__(self, extension: str, reason: Optional[str] = None):
        message = f"Unsupported image format: {extension}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.extension = extension


class DecodeError(ImageProcessingError):
    """Image bytes could not be decoded."""

    def __init__(self, message: str):
        super().__init__(f"Failed to decode image: {message}")


# ============================================================================
# Storage errors
# ============================================================================

class StorageError(BucketHelperError):
    """Base class for backing-store errors."""


class InvalidName(StorageError):
    """Folder or file name contains no allowed characters."""

    def __init__(self, field: str, value: str):
        super().__init__(
            f"Failed to upsert file, {field}=[{value}] contains invalid characters"
        )
        self.field = field
        self.value = value


class UploadFailed(StorageError):
    """Writing an object to the bucket failed."""

    def __init__(self, file_path: str, message: str):
        super().__init__(f"File upload failed: {file_path}: {message}")
        self.file_path = file_path


class BucketNotFound(StorageError):
    """Configured bucket does not exist."""

    def __init__(self, bucket_name: str):
        super().__init__(f"Storage bucket does not exist: {bucket_name}")
        self.bucket_name = bucket_name


class NotReady(StorageError):
    """Operation issued before the bucket existence check completed."""

    def __init__(self, bucket_name: str):
        super().__init__(
            f"Bucket {bucket_name} is not ready; await ensure_ready() or use GCPBucket.create()"
        )
        self.bucket_name = bucket_name
