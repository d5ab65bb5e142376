"""
Variant expansion.

Turns one logical file and its resize instructions into the ordered list of
physical files to upload: the original first, then one derived image per
ResizeSpec in declaration order.

Example:
    >>> expander = VariantExpander(ImageClassifier(), ImageProcessor())
    >>> files = await expander.expand(LogicalFile(
    ...     folder_name="avatars",
    ...     file_name="cat.jpg",
    ...     file_data=jpeg_bytes,
    ...     resize_options=[
    ...         ResizeSpec("small-", width=64, height=64, format=FormatSpec("webp")),
    ...     ],
    ... ))
    >>> [f.file_name for f in files]
    ['cat.jpg', 'small-cat.webp']
"""

from typing import List, Optional

from gcp_bucket.errors import ResizeOnNonImage
from gcp_bucket.imaging.classifier import ImageClassifier
from gcp_bucket.imaging.normalizer import normalize
from gcp_bucket.imaging.processor import ImageProcessor
from gcp_bucket.models import LogicalFile, PhysicalFile, ResizeSpec
from gcp_bucket.naming import has_extension, object_location, replace_extension
from gcp_bucket.utils.logging import get_logger
from gcp_bucket.utils.metrics import PrometheusMetrics, get_metrics

logger = get_logger(__name__)


def derive_variant_name(file_name: str, spec: ResizeSpec) -> str:
    """
    Compute the file name of a derived variant.

    The prefix is prepended to the spec's file name override (or the logical
    file name). A requested format replaces the existing extension, or is
    appended as ".<ext>" when there is none.

    Example:
        >>> derive_variant_name("cat.jpg", ResizeSpec("small-", format=FormatSpec("webp")))
        'small-cat.webp'
        >>> derive_variant_name("cat", ResizeSpec("small-", format=FormatSpec("png")))
        'small-cat.png'
    """
    name = spec.file_resize_prefix + (spec.file_name or file_name)
    if spec.format is not None:
        extension = spec.format.extension
        if has_extension(name):
            name = replace_extension(name, extension)
        else:
            name = f"{name}.{extension}"
    return name


class VariantExpander:
    """Expands logical files into physical files."""

    def __init__(
        self,
        classifier: ImageClassifier,
        processor: ImageProcessor,
        metrics: Optional[PrometheusMetrics] = None,
    ) -> None:
        self._classifier = classifier
        self._processor = processor
        self._metrics = metrics or get_metrics()

    async def expand(self, logical_file: LogicalFile) -> List[PhysicalFile]:
        """
        Expand a logical file into its physical files.

        Nothing partial is returned: either every variant is produced or the
        first error propagates.

        Raises:
            InvalidInputKind, BlobReadError: If file_data cannot be normalized
            ResizeOnNonImage: If resizing is requested for non-image data
            InvalidName: If the original or a derived name is invalid
            UnsupportedFormat, DecodeError: If a variant cannot be encoded
        """
        buffer = await normalize(logical_file.file_data)
        metadata = dict(logical_file.file_metadata or {})
        resize_options = logical_file.resize_options

        original = PhysicalFile(
            folder_name=logical_file.folder_name,
            file_name=logical_file.file_name,
            file_data=buffer,
            file_metadata=metadata,
        )

        if not resize_options:
            object_location(original.folder_name, original.file_name)
            return [original]

        if not self._classifier.is_image(buffer):
            logger.error(f"Resize requested for non-image file: {logical_file.file_name}")
            raise ResizeOnNonImage(logical_file.file_name)

        variant_names = [derive_variant_name(logical_file.file_name, spec) for spec in resize_options]

        # Validate every target before any encode work
        object_location(original.folder_name, original.file_name)
        for name in variant_names:
            object_location(logical_file.folder_name, name)

        files = [original]
        for spec, name in zip(resize_options, variant_names):
            data = await self._processor.resize_encode(buffer, spec.options)
            files.append(
                PhysicalFile(
                    folder_name=logical_file.folder_name,
                    file_name=name,
                    file_data=data,
                    file_metadata=dict(metadata),
                )
            )
            self._metrics.record_variant(spec.format.extension if spec.format else None)
            logger.debug(f"Derived variant {name} ({len(data)} bytes)")

        logger.info(
            f"Expanded {logical_file.file_name} into {len(files)} files: "
            f"{[f.file_name for f in files]}"
        )
        return files
