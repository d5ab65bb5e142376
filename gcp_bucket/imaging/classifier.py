"""
Content-based image classification.

Types are detected from magic bytes with `filetype`, never from file names.
A single ContentSniffer instance is shared process-wide and injected into the
classifier.
"""

from dataclasses import dataclass
from typing import Optional

import filetype

from gcp_bucket.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DetectedType:
    """Sniffed content type."""

    extension: str
    mime_type: str


class ContentSniffer:
    """Magic-byte type detection backed by filetype."""

    def detect(self, data: bytes) -> Optional[DetectedType]:
        if not data:
            return None
        kind = filetype.guess(bytes(data))
        if kind is None:
            return None
        return DetectedType(extension=kind.extension, mime_type=kind.mime)


default_sniffer = ContentSniffer()


class ImageClassifier:
    """
    Decides whether a normalized buffer holds an image.

    Example:
        >>> classifier = ImageClassifier()
        >>> classifier.is_image(png_bytes)
        True
        >>> classifier.detect_type(png_bytes)
        DetectedType(extension='png', mime_type='image/png')
    """

    def __init__(self, sniffer: Optional[ContentSniffer] = None) -> None:
        self._sniffer = sniffer or default_sniffer

    def detect_type(self, data: bytes) -> Optional[DetectedType]:
        detected = self._sniffer.detect(data)
        logger.debug(f"Detected content type: {detected}")
        return detected

    def is_image(self, data: bytes) -> bool:
        detected = self.detect_type(data)
        return detected is not None and detected.mime_type.startswith("image/")
