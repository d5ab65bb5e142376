"""
Backing-store interfaces and the Google Cloud Storage adapter.

The uploader and the bucket facade only talk to the StoreBucket, StoreFile
and WriteStream protocols. GCSStore adapts google-cloud-storage to them,
running the blocking SDK calls in worker threads.

Example usage:
    >>> from google.cloud import storage
    >>> store = GCSStore(storage.Client())
    >>> bucket = store.bucket("my-app-media")
    >>> await bucket.exists()
    True
"""

import asyncio
import io
from typing import Dict, Optional, Protocol

from google.cloud import storage

from gcp_bucket.utils.logging import get_logger

logger = get_logger(__name__)

# Sized uploads above this go through a resumable session in google-cloud-storage
MULTIPART_UPLOAD_LIMIT = 8 * 1024 * 1024


class WriteStream(Protocol):
    """Sequential object writer; each write returns once acknowledged."""

    async def write(self, chunk: bytes) -> None: ...

    async def end(self) -> None: ...


class StoreFile(Protocol):
    """Handle to one object path in the bucket."""

    def set_encryption_key(self, key: bytes) -> None: ...

    def create_write_stream(
        self,
        *,
        metadata: Dict[str, str],
        timeout: float,
        content_type: Optional[str] = None,
    ) -> WriteStream: ...

    def public_url(self) -> str: ...

    async def get_metadata(self) -> Dict[str, str]: ...

    async def set_metadata(self, metadata: Dict[str, str]) -> None: ...

    async def delete(self) -> None: ...

    async def download(self) -> bytes: ...


class StoreBucket(Protocol):
    """Bucket capability set used by the helper."""

    name: str

    async def exists(self) -> bool: ...

    def file(self, path: str) -> StoreFile: ...


class Store(Protocol):
    """Session handle that opens buckets by name."""

    def bucket(self, name: str) -> StoreBucket: ...


# ============================================================================
# Google Cloud Storage adapter
# ============================================================================

class GCSWriteStream:
    """
    Write stream for one blob.

    Chunks are acknowledged once buffered; end() sends the object with its
    metadata and content type attached. Objects up to
    MULTIPART_UPLOAD_LIMIT go out in a single multipart request; larger ones
    are sent by google-cloud-storage as a resumable upload session.
    """

    def __init__(
        self,
        blob: storage.Blob,
        metadata: Dict[str, str],
        timeout: float,
        content_type: Optional[str] = None,
    ) -> None:
        self._blob = blob
        self._metadata = metadata
        self._timeout = timeout
        self._content_type = content_type
        self._buffer = io.BytesIO()
        self._size = 0
        self._ended = False

    @property
    def resumable(self) -> bool:
        """True when the buffered object is too large for one multipart request."""
        return self._size > MULTIPART_UPLOAD_LIMIT

    async def write(self, chunk: bytes) -> None:
        if self._ended:
            raise ValueError("write after end")
        self._buffer.write(chunk)
        self._size += len(chunk)

    async def end(self) -> None:
        if self._ended:
            return
        self._ended = True
        if self._metadata:
            self._blob.metadata = dict(self._metadata)
        target = f"gs://{self._blob.bucket.name}/{self._blob.name}"
        if self.resumable:
            logger.info(
                f"Object exceeds {MULTIPART_UPLOAD_LIMIT} bytes, "
                f"sending {target} as a resumable upload ({self._size} bytes)"
            )
        else:
            logger.debug(f"Sending {self._size} bytes to {target}")
        await asyncio.to_thread(
            self._blob.upload_from_file,
            self._buffer,
            rewind=True,
            size=self._size,
            content_type=self._content_type,
            timeout=self._timeout,
        )


class GCSFile:
    """StoreFile backed by a google-cloud-storage Blob."""

    def __init__(self, bucket: storage.Bucket, path: str) -> None:
        self._bucket = bucket
        self._path = path
        self._blob = bucket.blob(path)

    def set_encryption_key(self, key: bytes) -> None:
        # Blob encryption keys are fixed at construction
        self._blob = self._bucket.blob(self._path, encryption_key=key)

    def create_write_stream(
        self,
        *,
        metadata: Dict[str, str],
        timeout: float,
        content_type: Optional[str] = None,
    ) -> GCSWriteStream:
        return GCSWriteStream(self._blob, metadata, timeout, content_type)

    def public_url(self) -> str:
        return self._blob.public_url

    async def get_metadata(self) -> Dict[str, str]:
        await asyncio.to_thread(self._blob.reload)
        return dict(self._blob.metadata or {})

    async def set_metadata(self, metadata: Dict[str, str]) -> None:
        self._blob.metadata = dict(metadata)
        await asyncio.to_thread(self._blob.patch)

    async def delete(self) -> None:
        await asyncio.to_thread(self._blob.delete)

    async def download(self) -> bytes:
        return await asyncio.to_thread(self._blob.download_as_bytes)


class GCSBucket:
    """StoreBucket backed by a google-cloud-storage Bucket."""

    def __init__(self, bucket: storage.Bucket) -> None:
        self._bucket = bucket
        self.name = bucket.name

    async def exists(self) -> bool:
        return await asyncio.to_thread(self._bucket.exists)

    def file(self, path: str) -> GCSFile:
        return GCSFile(self._bucket, path)


class GCSStore:
    """Store backed by a google-cloud-storage Client."""

    def __init__(self, client: Optional[storage.Client] = None) -> None:
        self._client = client if client is not None else storage.Client()

    def bucket(self, name: str) -> GCSBucket:
        return GCSBucket(self._client.bucket(name))
