"""
Bucket facade.

Owns the backing-store bucket handle, verifies the bucket exists before any
storage operation is accepted, and exposes upsert/delete/download built from
the variant expander and the chunked uploader.

Example usage:
    >>> from google.cloud import storage
    >>> bucket = await GCPBucket.create("my-app-media", GCSStore(storage.Client()))
    >>> receipts = await bucket.upsert_one(
    ...     LogicalFile(folder_name="avatars", file_name="cat.jpg", file_data=jpeg_bytes),
    ...     progress_callback=lambda path, pct: print(f"{path}: {pct:.0f}%"),
    ... )
    >>> receipts[0].file_url
    'https://storage.googleapis.com/my-app-media/avatars/cat.jpg'
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from gcp_bucket.errors import BucketNotFound, NotAnImage, NotReady
from gcp_bucket.imaging.classifier import ImageClassifier
from gcp_bucket.imaging.normalizer import normalize
from gcp_bucket.imaging.processor import ImageProcessor
from gcp_bucket.models import (
    Fit,
    ImageMetadata,
    LogicalFile,
    PhysicalFile,
    ResizeOptions,
    ScaledImage,
    UploadReceipt,
    validate_metadata,
)
from gcp_bucket.uploader.store import GCSStore, Store, StoreFile
from gcp_bucket.uploader.uploader import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_UPLOAD_TIMEOUT_SECONDS,
    ChunkedUploader,
    ProgressCallback,
)
from gcp_bucket.utils.config import BucketConfig
from gcp_bucket.utils.logging import get_logger, log_function_call
from gcp_bucket.utils.metrics import PrometheusMetrics, get_metrics
from gcp_bucket.variants.expander import VariantExpander

logger = get_logger(__name__)


class GCPBucket:
    """
    Helper over one Cloud Storage bucket.

    Construction does no I/O. Await ensure_ready() (or build the instance with
    GCPBucket.create()) before issuing storage operations; until then they
    raise NotReady.

    Attributes:
        bucket_name: Name of the bucket
    """

    def __init__(
        self,
        bucket_name: str,
        store: Store,
        *,
        encrypt_key: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        upload_timeout: float = DEFAULT_UPLOAD_TIMEOUT_SECONDS,
        classifier: Optional[ImageClassifier] = None,
        processor: Optional[ImageProcessor] = None,
        metrics: Optional[PrometheusMetrics] = None,
    ) -> None:
        if not bucket_name:
            raise ValueError("bucket_name is required")
        if store is None:
            raise ValueError("store is required")

        self.bucket_name = bucket_name
        self._bucket = store.bucket(bucket_name)
        self._encrypt_key = encrypt_key.encode() if encrypt_key else None
        self._metrics = metrics or get_metrics()
        self._classifier = classifier or ImageClassifier()
        self._processor = processor or ImageProcessor()
        self._expander = VariantExpander(self._classifier, self._processor, self._metrics)
        self._uploader = ChunkedUploader(
            self._bucket,
            self._classifier,
            chunk_size=chunk_size,
            encrypt_key=self._encrypt_key,
            timeout=upload_timeout,
            metrics=self._metrics,
        )
        self._ready = False

    @classmethod
    async def create(cls, bucket_name: str, store: Store, **kwargs: Any) -> "GCPBucket":
        """
        Construct the facade and wait until the bucket is verified.

        Raises:
            ValueError: If bucket_name or store is missing
            BucketNotFound: If the bucket does not exist
        """
        instance = cls(bucket_name, store, **kwargs)
        await instance.ensure_ready()
        return instance

    @classmethod
    async def from_config(
        cls,
        config: BucketConfig,
        store: Optional[Store] = None,
        **kwargs: Any,
    ) -> "GCPBucket":
        """
        Build a ready facade from environment configuration.

        Without an explicit store, a google-cloud-storage client is created,
        authenticated with the service-account file from
        GOOGLE_APPLICATION_CREDENTIALS when one is configured.
        """
        if store is None:
            from google.cloud import storage

            if config.google_credentials_path:
                logger.info(f"Using service account credentials: {config.google_credentials_path}")
                client = storage.Client.from_service_account_json(
                    config.google_credentials_path, project=config.project
                )
            else:
                client = storage.Client(project=config.project)
            store = GCSStore(client)
        return await cls.create(
            config.bucket_name,
            store,
            encrypt_key=config.encrypt_key,
            chunk_size=config.chunk_size,
            upload_timeout=config.upload_timeout_seconds,
            **kwargs,
        )

    @property
    def ready(self) -> bool:
        return self._ready

    async def ensure_ready(self) -> None:
        """
        Verify the bucket exists. Safe to call more than once.

        Raises:
            BucketNotFound: If the bucket does not exist
        """
        if self._ready:
            return
        logger.info(f"Checking bucket exists: {self.bucket_name}")
        if not await self._bucket.exists():
            logger.error(f"Storage bucket does not exist: {self.bucket_name}")
            raise BucketNotFound(self.bucket_name)
        self._ready = True
        logger.info(f"Bucket ready: {self.bucket_name}")

    def _require_ready(self) -> None:
        if not self._ready:
            raise NotReady(self.bucket_name)

    def _file(self, file_path: str) -> StoreFile:
        handle = self._bucket.file(file_path)
        if self._encrypt_key:
            handle.set_encryption_key(self._encrypt_key)
        return handle

    # ========================================================================
    # Upsert
    # ========================================================================

    async def _upload_all(
        self,
        physical_files: List[PhysicalFile],
        progress_callback: Optional[ProgressCallback],
    ) -> List[UploadReceipt]:
        # gather keeps issue order; siblings keep running if one fails
        with self._metrics.track_active("upsert"):
            return list(
                await asyncio.gather(
                    *(self._uploader.upload(f, progress_callback) for f in physical_files)
                )
            )

    @log_function_call
    async def upsert_one(
        self,
        file: LogicalFile,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[UploadReceipt]:
        """
        Upsert one logical file and its variants.

        Returns:
            Receipts for the original followed by each variant, in resize order

        Raises:
            NotReady: If the bucket has not been verified yet
            ResizeOnNonImage, InvalidName, InvalidInputKind: Before any upload
            UploadFailed: If any object write fails
        """
        self._require_ready()
        physical_files = await self._expander.expand(file)
        return await self._upload_all(physical_files, progress_callback)

    @log_function_call
    async def upsert_many(
        self,
        files: Sequence[LogicalFile],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[UploadReceipt]:
        """
        Upsert several logical files concurrently.

        Every logical file is expanded first; the flattened physical files are
        then uploaded concurrently. The result is index-aligned with the
        flattened order: [file1 original, file1 variants..., file2 original, ...].

        Raises:
            NotReady: If the bucket has not been verified yet
            ResizeOnNonImage, InvalidName, InvalidInputKind: Before any upload
            UploadFailed: First upload failure observed; siblings are not
                cancelled and written objects are not rolled back
        """
        self._require_ready()
        expanded = await asyncio.gather(*(self._expander.expand(f) for f in files))
        physical_files = [physical for group in expanded for physical in group]
        logger.info(
            f"Upserting {len(physical_files)} objects from {len(files)} logical files"
        )
        return await self._upload_all(physical_files, progress_callback)

    # ========================================================================
    # Delete / Download
    # ========================================================================

    @log_function_call
    async def delete_file(self, file_path: str) -> None:
        """Delete an object from the bucket."""
        self._require_ready()
        try:
            await self._bucket.file(file_path).delete()
        except Exception as e:
            self._metrics.record_gcs_error(operation="delete", error_type=type(e).__name__)
            raise

    @log_function_call
    async def download(
        self,
        file_path: str,
        metadata_patch: Optional[Dict[str, str]] = None,
    ) -> bytes:
        """
        Download an object, optionally merging new custom metadata first.

        Args:
            file_path: Object path in the bucket
            metadata_patch: Metadata merged over the existing metadata

        Returns:
            Object bytes

        Raises:
            InvalidMetadata: If metadata_patch is not str -> str
        """
        self._require_ready()
        patch = validate_metadata(metadata_patch)
        handle = self._file(file_path)
        try:
            if patch:
                existing = await handle.get_metadata()
                await handle.set_metadata({**existing, **patch})
            with self._metrics.track_active("download"):
                return await handle.download()
        except Exception as e:
            self._metrics.record_gcs_error(operation="download", error_type=type(e).__name__)
            raise

    # ========================================================================
    # Image helpers
    # ========================================================================

    async def _image_buffer(self, data: Any) -> bytes:
        buffer = await normalize(data)
        if not self._classifier.is_image(buffer):
            raise NotAnImage()
        return buffer

    async def is_image(self, data: Any) -> bool:
        """Return True when data (bytes, base64 or blob) sniffs as an image."""
        return self._classifier.is_image(await normalize(data))

    async def get_image(self, data: Any, options: ResizeOptions) -> bytes:
        """
        Resize and re-encode an image without uploading it.

        Raises:
            NotAnImage: If data is not an image
        """
        buffer = await self._image_buffer(data)
        return await self._processor.resize_encode(buffer, options)

    async def get_image_size_by_factor(
        self,
        data: Any,
        scale_factor: float,
        fit: Optional[Fit] = None,
    ) -> ScaledImage:
        """
        Resize an image by a scale factor.

        Raises:
            ValueError: If scale_factor is missing
            NotAnImage: If data is not an image
        """
        if not scale_factor:
            raise ValueError("The scale_factor is not provided.")
        buffer = await self._image_buffer(data)
        return await self._processor.scale_by_factor(buffer, scale_factor, fit)

    async def get_image_metadata(self, data: Any) -> ImageMetadata:
        """
        Read image dimensions and format.

        Raises:
            NotAnImage: If data is not an image
        """
        buffer = await self._image_buffer(data)
        return await self._processor.metadata(buffer)
