"""
Image handling for the upload pipeline.

- normalizer: bytes / base64 / blob -> bytes
- classifier: magic-byte type detection
- processor: Pillow resize and re-encode
"""

from .classifier import ContentSniffer, DetectedType, ImageClassifier, default_sniffer
from .normalizer import normalize
from .processor import ImageProcessor

__all__ = [
    "ContentSniffer",
    "DetectedType",
    "ImageClassifier",
    "ImageProcessor",
    "default_sniffer",
    "normalize",
]
