"""Pytest configuration and shared fixtures."""

import io
from typing import Dict, List, Optional, Set

import pytest
from PIL import Image
from prometheus_client import CollectorRegistry

from gcp_bucket.imaging.classifier import ImageClassifier
from gcp_bucket.imaging.processor import ImageProcessor
from gcp_bucket.utils.metrics import PrometheusMetrics


# ============================================================================
# In-memory backing store
# ============================================================================

class StoreWriteError(Exception):
    """Simulated backing-store write failure."""


class InMemoryWriteStream:
    """Write stream that records every chunk and commits on end()."""

    def __init__(self, bucket: "InMemoryBucket", path: str, metadata: Dict[str, str], timeout: float):
        self._bucket = bucket
        self._path = path
        self._metadata = metadata
        self.timeout = timeout
        self._chunks: List[bytes] = []
        self._in_flight = False

    async def write(self, chunk: bytes) -> None:
        # Overlapping writes on one stream would break chunk ordering
        assert not self._in_flight, "chunk written before previous ack"
        self._in_flight = True
        try:
            if self._path in self._bucket.fail_paths and len(self._chunks) >= self._bucket.fail_after_chunks:
                raise StoreWriteError(f"write rejected for {self._path}")
            self._chunks.append(chunk)
            self._bucket.chunk_writes.setdefault(self._path, []).append(len(chunk))
        finally:
            self._in_flight = False

    async def end(self) -> None:
        self._bucket.objects[self._path] = b"".join(self._chunks)
        self._bucket.metadata[self._path] = dict(self._metadata)


class InMemoryFile:
    def __init__(self, bucket: "InMemoryBucket", path: str):
        self._bucket = bucket
        self.path = path

    def set_encryption_key(self, key: bytes) -> None:
        self._bucket.encryption_keys[self.path] = key

    def create_write_stream(
        self,
        *,
        metadata: Dict[str, str],
        timeout: float,
        content_type: Optional[str] = None,
    ) -> InMemoryWriteStream:
        self._bucket.streams_opened.append(self.path)
        self._bucket.content_types[self.path] = content_type
        return InMemoryWriteStream(self._bucket, self.path, metadata, timeout)

    def public_url(self) -> str:
        return f"https://storage.googleapis.com/{self._bucket.name}/{self.path}"

    async def get_metadata(self) -> Dict[str, str]:
        return dict(self._bucket.metadata.get(self.path, {}))

    async def set_metadata(self, metadata: Dict[str, str]) -> None:
        self._bucket.metadata[self.path] = dict(metadata)

    async def delete(self) -> None:
        if self.path not in self._bucket.objects:
            raise KeyError(self.path)
        del self._bucket.objects[self.path]
        self._bucket.metadata.pop(self.path, None)

    async def download(self) -> bytes:
        return self._bucket.objects[self.path]


class InMemoryBucket:
    def __init__(self, name: str, exists: bool = True):
        self.name = name
        self.exists_flag = exists
        self.exists_calls = 0
        self.objects: Dict[str, bytes] = {}
        self.metadata: Dict[str, Dict[str, str]] = {}
        self.chunk_writes: Dict[str, List[int]] = {}
        self.streams_opened: List[str] = []
        self.encryption_keys: Dict[str, bytes] = {}
        self.content_types: Dict[str, Optional[str]] = {}
        self.fail_paths: Set[str] = set()
        self.fail_after_chunks = 0

    async def exists(self) -> bool:
        self.exists_calls += 1
        return self.exists_flag

    def file(self, path: str) -> InMemoryFile:
        return InMemoryFile(self, path)


class InMemoryStore:
    def __init__(self, existing: Optional[Set[str]] = None):
        self.existing = existing if existing is not None else {"test-bucket"}
        self.buckets: Dict[str, InMemoryBucket] = {}

    def bucket(self, name: str) -> InMemoryBucket:
        if name not in self.buckets:
            self.buckets[name] = InMemoryBucket(name, exists=name in self.existing)
        return self.buckets[name]


# ============================================================================
# Fixtures
# ============================================================================

def _encode(image: Image.Image, fmt: str) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """40x20 opaque red PNG."""
    return _encode(Image.new("RGB", (40, 20), (255, 0, 0)), "PNG")


@pytest.fixture
def rgba_png_bytes() -> bytes:
    """30x30 half-transparent PNG."""
    return _encode(Image.new("RGBA", (30, 30), (0, 128, 255, 128)), "PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    """64x32 JPEG."""
    return _encode(Image.new("RGB", (64, 32), (10, 200, 30)), "JPEG")


@pytest.fixture
def text_bytes() -> bytes:
    return b"plain text, definitely not an image\n" * 10


@pytest.fixture
def metrics() -> PrometheusMetrics:
    return PrometheusMetrics(registry=CollectorRegistry())


@pytest.fixture
def classifier() -> ImageClassifier:
    return ImageClassifier()


@pytest.fixture
def processor() -> ImageProcessor:
    return ImageProcessor()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def memory_bucket(store: InMemoryStore) -> InMemoryBucket:
    return store.bucket("test-bucket")
