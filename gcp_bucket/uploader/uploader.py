"""
Chunked uploader for Google Cloud Storage objects.

Writes one physical file to the bucket in fixed-size chunks, awaiting each
chunk's acknowledgment before issuing the next, and reports progress as an
async stream of events.

Example usage:
    >>> uploader = ChunkedUploader(bucket, ImageClassifier(), chunk_size=4096)
    >>> session = uploader.open_session(physical_file)
    >>> async for event in session:
    ...     print(f"{event.file_path}: {event.percentage:.0f}%")
    >>> print(session.receipt.file_url)
"""

import mimetypes
import time
from typing import AsyncIterator, Callable, Optional, Tuple

from gcp_bucket.errors import UploadFailed
from gcp_bucket.imaging.classifier import DetectedType, ImageClassifier
from gcp_bucket.models import PhysicalFile, UploadProgress, UploadReceipt
from gcp_bucket.naming import object_location
from gcp_bucket.uploader.store import StoreBucket, StoreFile, WriteStream
from gcp_bucket.utils.logging import get_logger
from gcp_bucket.utils.metrics import PrometheusMetrics, get_metrics

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 1024
DEFAULT_UPLOAD_TIMEOUT_SECONDS = 5.0

ProgressCallback = Callable[[str, float], None]


class UploadSession:
    """
    One object upload, consumed as an async iterator of UploadProgress.

    Names are already validated when the session exists; nothing touches the
    store until iteration starts. After the iterator is exhausted, `receipt`
    holds the UploadReceipt.
    """

    def __init__(
        self,
        uploader: "ChunkedUploader",
        physical_file: PhysicalFile,
        file_name: str,
        file_path: str,
    ) -> None:
        self._uploader = uploader
        self._file = physical_file
        self.file_name = file_name
        self.file_path = file_path
        self.receipt: Optional[UploadReceipt] = None
        self._started = False

    def __aiter__(self) -> AsyncIterator[UploadProgress]:
        if self._started:
            raise RuntimeError(f"Upload session for {self.file_path} already consumed")
        self._started = True
        return self._run()

    def _fail(self, error: Exception) -> UploadFailed:
        logger.error(f"Upload failed: {self.file_path}: {error}", exc_info=True)
        metrics = self._uploader.metrics
        metrics.record_upload_failure()
        metrics.record_gcs_error(operation="upload", error_type=type(error).__name__)
        return UploadFailed(self.file_path, str(error))

    async def _write(self, stream: WriteStream, chunk: bytes) -> None:
        try:
            await stream.write(chunk)
        except Exception as e:
            raise self._fail(e) from e

    async def _end(self, stream: WriteStream) -> None:
        try:
            await stream.end()
        except Exception as e:
            raise self._fail(e) from e

    def _content_type(self, detected: Optional[DetectedType]) -> Optional[str]:
        # Sniffed type wins; the object name covers text formats without magic bytes
        if detected is not None:
            return detected.mime_type
        guessed, _ = mimetypes.guess_type(self.file_name)
        return guessed

    def _open(self, content_type: Optional[str]) -> Tuple[StoreFile, WriteStream]:
        uploader = self._uploader
        try:
            handle = uploader.bucket.file(self.file_path)
            if uploader.encrypt_key:
                handle.set_encryption_key(uploader.encrypt_key)
            stream = handle.create_write_stream(
                metadata=dict(self._file.file_metadata),
                timeout=uploader.timeout,
                content_type=content_type,
            )
        except Exception as e:
            raise self._fail(e) from e
        return handle, stream

    async def _run(self) -> AsyncIterator[UploadProgress]:
        uploader = self._uploader
        data = self._file.file_data
        total_bytes = len(data)
        chunk_size = uploader.chunk_size
        start_time = time.time()

        logger.info(
            f"Uploading {total_bytes} bytes to {self.file_path} "
            f"(chunk size: {chunk_size})"
        )

        detected = uploader.classifier.detect_type(data)

        with uploader.metrics.track_upload():
            handle, stream = self._open(self._content_type(detected))

            uploaded_bytes = 0
            chunks = 0
            view = memoryview(data)
            for start in range(0, total_bytes, chunk_size):
                chunk = bytes(view[start:start + chunk_size])
                await self._write(stream, chunk)
                uploaded_bytes += len(chunk)
                chunks += 1
                logger.debug(f"Chunk {chunks} acknowledged for {self.file_path}")
                yield UploadProgress(self.file_path, uploaded_bytes, total_bytes)

            await self._end(stream)
            if total_bytes == 0:
                yield UploadProgress(self.file_path, 0, 0)

        self.receipt = UploadReceipt(
            file_url=handle.public_url(),
            file_path=self.file_path,
            file_name=self.file_name,
            file_type=detected.extension if detected else None,
            file_content_type=detected.mime_type if detected else None,
        )

        uploader.metrics.record_upload_success(bytes_uploaded=total_bytes, chunks=chunks)
        logger.info(
            f"Upload successful: {self.file_path} "
            f"({total_bytes} bytes, {chunks} chunks in {time.time() - start_time:.2f}s)"
        )


class ChunkedUploader:
    """
    Uploads physical files to a bucket in sequential fixed-size chunks.

    Attributes:
        bucket: Backing-store bucket handle (shared, read-only)
        classifier: Content sniffing used to annotate receipts
        chunk_size: Bytes per chunk write
        encrypt_key: Customer-supplied encryption key applied to each object
        timeout: Store request timeout in seconds
    """

    def __init__(
        self,
        bucket: StoreBucket,
        classifier: ImageClassifier,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        encrypt_key: Optional[bytes] = None,
        timeout: float = DEFAULT_UPLOAD_TIMEOUT_SECONDS,
        metrics: Optional[PrometheusMetrics] = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.bucket = bucket
        self.classifier = classifier
        self.chunk_size = chunk_size
        self.encrypt_key = encrypt_key
        self.timeout = timeout
        self.metrics = metrics or get_metrics()

    def open_session(self, physical_file: PhysicalFile) -> UploadSession:
        """
        Validate names and prepare an upload.

        Raises:
            InvalidName: If the normalized folder or file name is invalid
        """
        _, file_name, file_path = object_location(
            physical_file.folder_name, physical_file.file_name
        )
        return UploadSession(self, physical_file, file_name, file_path)

    async def upload(
        self,
        physical_file: PhysicalFile,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UploadReceipt:
        """
        Upload one physical file.

        Args:
            physical_file: File to write
            progress_callback: Called with (file_path, percentage) after each
                acknowledged chunk

        Returns:
            UploadReceipt for the written object

        Raises:
            InvalidName: Before any write if a name is invalid
            UploadFailed: If the store rejects a write
        """
        session = self.open_session(physical_file)
        async for event in session:
            if progress_callback is not None:
                progress_callback(event.file_path, event.percentage)
        if session.receipt is None:
            raise UploadFailed(session.file_path, "upload ended without a receipt")
        return session.receipt
