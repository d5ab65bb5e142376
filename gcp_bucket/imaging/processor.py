"""
Image resize and re-encode backed by Pillow.

Blocking Pillow work runs in a worker thread so concurrent uploads keep
flowing while variants are encoded.
"""

import asyncio
import io
import math
from typing import Optional, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from gcp_bucket.errors import DecodeError, UnsupportedFormat
from gcp_bucket.models import (
    DEFAULT_FIT,
    Fit,
    FormatSpec,
    ImageMetadata,
    ResizeOptions,
    ScaledImage,
)
from gcp_bucket.utils.logging import get_logger

logger = get_logger(__name__)

# Extension -> Pillow save format. None means no encoder is available.
PILLOW_FORMATS = {
    "webp": "WEBP",
    "png": "PNG",
    "avif": "AVIF",
    "jp2": "JPEG2000",
    "tif": "TIFF",
    "tiff": "TIFF",
    "gif": "GIF",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "heif": None,
    "jxl": None,
    "svg": None,
}

RAW_EXTENSION = "raw"

# Formats that cannot store an alpha channel
_OPAQUE_FORMATS = {"JPEG"}

_RESAMPLE = Image.Resampling.LANCZOS


def _decode(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise DecodeError(str(e)) from e
    return image


def _has_alpha(image: Image.Image) -> bool:
    return "A" in image.getbands() or "transparency" in image.info


def _target_size(
    source: Tuple[int, int], width: Optional[int], height: Optional[int]
) -> Tuple[int, int]:
    """Fill in a missing dimension from the source aspect ratio."""
    src_w, src_h = source
    if width is None:
        width = max(1, round(src_w * height / src_h))
    elif height is None:
        height = max(1, round(src_h * width / src_w))
    return width, height


def _resize(image: Image.Image, options: ResizeOptions) -> Image.Image:
    if options.width is None and options.height is None:
        return image

    width, height = _target_size(image.size, options.width, options.height)
    fit = Fit(options.fit) if options.fit else DEFAULT_FIT

    if fit == Fit.FILL:
        return image.resize((width, height), _RESAMPLE)
    if fit == Fit.COVER:
        return ImageOps.fit(image, (width, height), method=_RESAMPLE)
    if fit == Fit.CONTAIN:
        background = (0, 0, 0, 255) if image.mode == "RGBA" else (0, 0, 0)
        return ImageOps.pad(image, (width, height), method=_RESAMPLE, color=background)

    src_w, src_h = image.size
    ratios = (width / src_w, height / src_h)
    scale = min(ratios) if fit == Fit.INSIDE else max(ratios)
    new_size = (max(1, round(src_w * scale)), max(1, round(src_h * scale)))
    return image.resize(new_size, _RESAMPLE)


def _encode(image: Image.Image, source_format: Optional[str], format_spec: Optional[FormatSpec]) -> bytes:
    if format_spec is not None and format_spec.extension == RAW_EXTENSION:
        return image.tobytes()

    if format_spec is None:
        pillow_format = source_format or "PNG"
        save_options = {}
    else:
        pillow_format = PILLOW_FORMATS.get(format_spec.extension)
        if pillow_format is None:
            raise UnsupportedFormat(format_spec.extension, "no encoder available")
        save_options = dict(format_spec.options)

    if pillow_format in _OPAQUE_FORMATS and image.mode != "RGB":
        image = image.convert("RGB")

    buffer = io.BytesIO()
    try:
        image.save(buffer, format=pillow_format, **save_options)
    except KeyError as e:
        raise UnsupportedFormat(pillow_format, "encoder not installed") from e
    except OSError as e:
        raise UnsupportedFormat(pillow_format, str(e)) from e
    return buffer.getvalue()


class ImageProcessor:
    """
    Resize/reformat operation used to build image variants.

    Example:
        >>> processor = ImageProcessor()
        >>> webp = await processor.resize_encode(
        ...     png_bytes,
        ...     ResizeOptions(width=200, height=200, format=FormatSpec("webp")),
        ... )
    """

    def _resize_encode_sync(self, data: bytes, options: ResizeOptions) -> bytes:
        image = _decode(data)
        source_format = image.format
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA" if _has_alpha(image) else "RGB")
        resized = _resize(image, options)
        encoded = _encode(resized, source_format, options.format)
        logger.debug(
            f"Resized {image.size} -> {resized.size}, "
            f"{len(data)} -> {len(encoded)} bytes"
        )
        return encoded

    def _metadata_sync(self, data: bytes) -> ImageMetadata:
        image = _decode(data)
        width, height = image.size
        return ImageMetadata(
            width=width,
            height=height,
            format=image.format,
            mode=image.mode,
            has_alpha=_has_alpha(image),
        )

    async def resize_encode(self, data: bytes, options: ResizeOptions) -> bytes:
        """
        Resize and optionally re-encode an image.

        Args:
            data: Encoded source image
            options: Target size, fit (default contain) and output format

        Returns:
            Encoded image bytes

        Raises:
            DecodeError: If data is not a decodable image
            UnsupportedFormat: If the output format cannot be written
        """
        return await asyncio.to_thread(self._resize_encode_sync, data, options)

    async def metadata(self, data: bytes) -> ImageMetadata:
        return await asyncio.to_thread(self._metadata_sync, data)

    async def scale_by_factor(
        self,
        data: bytes,
        scale_factor: float,
        fit: Optional[Union[Fit, str]] = None,
    ) -> ScaledImage:
        """
        Resize an image to floor(width * factor) x floor(height * factor).

        Raises:
            ValueError: If scale_factor is missing or not positive
        """
        if not scale_factor or scale_factor <= 0:
            raise ValueError("The scale_factor is not provided.")

        info = await self.metadata(data)
        width = max(1, math.floor(info.width * scale_factor))
        height = max(1, math.floor(info.height * scale_factor))
        resized = await self.resize_encode(
            data,
            ResizeOptions(width=width, height=height, fit=Fit(fit) if fit else None),
        )
        return ScaledImage(width=width, height=height, data=resized)
