"""
Data model for the upload pipeline.

A LogicalFile is what the caller hands in; the variant expander turns it into
one or more PhysicalFiles, each of which the chunked uploader writes to a
single object path and reports on with an UploadReceipt.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from gcp_bucket.errors import InvalidMetadata, UnsupportedFormat

SUPPORTED_FORMAT_EXTENSIONS = [
    "webp",
    "png",
    "avif",
    "heif",
    "jxl",
    "jp2",
    "raw",
    "tif",
    "tiff",
    "svg",
    "gif",
    "jpg",
    "jpeg",
]


class Fit(str, Enum):
    """Containment strategy used when both width and height are given."""

    COVER = "cover"
    CONTAIN = "contain"
    FILL = "fill"
    INSIDE = "inside"
    OUTSIDE = "outside"


DEFAULT_FIT = Fit.CONTAIN


def validate_metadata(metadata: Optional[Mapping[Any, Any]]) -> Dict[str, str]:
    """
    Check that metadata is a str -> str mapping and return a plain dict copy.

    Raises:
        InvalidMetadata: If metadata is not a mapping or holds non-string items
    """
    if metadata is None:
        return {}
    if not isinstance(metadata, Mapping):
        raise InvalidMetadata(
            f"Metadata must be a mapping, got {type(metadata).__name__}"
        )
    for key, value in metadata.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise InvalidMetadata(
                f"Metadata must map strings to strings, got {key!r}: {value!r}"
            )
    return dict(metadata)


@dataclass(frozen=True)
class FormatSpec:
    """
    Output format for a derived image.

    Attributes:
        extension: Target extension (webp, png, jpg, ...)
        options: Encoder keyword arguments, e.g. {"quality": 80}
    """

    extension: str
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        extension = str(self.extension).lower().lstrip(".")
        if extension not in SUPPORTED_FORMAT_EXTENSIONS:
            raise UnsupportedFormat(self.extension, f"supported: {SUPPORTED_FORMAT_EXTENSIONS}")
        object.__setattr__(self, "extension", extension)


@dataclass(frozen=True)
class ResizeOptions:
    """Resize/encode request passed to the image processor."""

    width: Optional[int] = None
    height: Optional[int] = None
    fit: Optional[Fit] = None
    format: Optional[FormatSpec] = None


@dataclass(frozen=True)
class ResizeSpec:
    """
    Declares one derived variant of a logical file.

    Attributes:
        file_resize_prefix: Prefix added to the variant's file name
        width: Target width in pixels
        height: Target height in pixels
        fit: Containment strategy (defaults to contain)
        file_name: Overrides the logical file's name before prefixing
        format: Output format; also rewrites the name's extension
    """

    file_resize_prefix: str
    width: Optional[int] = None
    height: Optional[int] = None
    fit: Optional[Fit] = None
    file_name: Optional[str] = None
    format: Optional[FormatSpec] = None

    @property
    def options(self) -> ResizeOptions:
        return ResizeOptions(
            width=self.width,
            height=self.height,
            fit=self.fit,
            format=self.format,
        )


@dataclass(frozen=True)
class LogicalFile:
    """
    Caller's description of a file to store, before variant expansion.

    Attributes:
        folder_name: Folder within the bucket
        file_name: Object file name
        file_data: bytes, base64 text, or a blob-like object with read()
        file_metadata: Custom object metadata (strings only)
        resize_options: Variants to derive, in output order
    """

    folder_name: str
    file_name: str
    file_data: Any = field(repr=False)
    file_metadata: Optional[Dict[str, str]] = None
    resize_options: Optional[List[ResizeSpec]] = None

    def __post_init__(self) -> None:
        if self.file_metadata is not None:
            object.__setattr__(self, "file_metadata", validate_metadata(self.file_metadata))
        if self.resize_options is not None:
            object.__setattr__(self, "resize_options", list(self.resize_options))


@dataclass(frozen=True)
class PhysicalFile:
    """One concrete byte sequence destined for one object path."""

    folder_name: str
    file_name: str
    file_data: bytes = field(repr=False)
    file_metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.file_data)


@dataclass(frozen=True)
class UploadReceipt:
    """
    Details of an uploaded object.

    Attributes:
        file_url: Public URL of the object
        file_path: Object path within the bucket
        file_name: Object file name
        file_type: Sniffed extension (None when unknown)
        file_content_type: Sniffed MIME type (None when unknown)
    """

    file_url: str
    file_path: str
    file_name: str
    file_type: Optional[str] = None
    file_content_type: Optional[str] = None


@dataclass(frozen=True)
class UploadProgress:
    """Progress event emitted after each acknowledged chunk."""

    file_path: str
    uploaded_bytes: int
    total_bytes: int

    @property
    def percentage(self) -> float:
        if self.total_bytes == 0 or self.uploaded_bytes >= self.total_bytes:
            return 100.0
        return self.uploaded_bytes / self.total_bytes * 100


@dataclass(frozen=True)
class ImageMetadata:
    """Decoded image properties."""

    width: int
    height: int
    format: Optional[str]
    mode: str
    has_alpha: bool


@dataclass(frozen=True)
class ScaledImage:
    """Result of a resize by scale factor."""

    width: int
    height: int
    data: bytes = field(repr=False)
