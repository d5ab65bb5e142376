"""Integration tests for end-to-end upsert workflows.

These tests verify that all components work together correctly:
- Preset file → resize specs → upsert → download
- Mixed batches of images and documents
- Concurrent uploads sharing one bucket handle
"""

import base64
import io
from pathlib import Path

import pytest
from PIL import Image

from gcp_bucket import GCPBucket, LogicalFile
from gcp_bucket.utils.config_loader import build_resize_specs, load_config, validate_config

pytestmark = pytest.mark.integration


@pytest.fixture
def preset_file(tmp_path: Path) -> Path:
    path = tmp_path / "presets.yaml"
    path.write_text(
        """
version: "1.0"
presets:
  gallery:
    - prefix: thumb-
      width: 16
      height: 16
      fit: cover
      format:
        extension: webp
        options:
          quality: 70
    - prefix: half-
      width: 32
    - prefix: icon-
      width: 8
      height: 8
      fit: fill
      file_name: icon
      format: png
"""
    )
    return path


@pytest.mark.asyncio
async def test_preset_driven_upsert_and_download(store, metrics, preset_file, jpeg_bytes):
    """Test a preset file drives variant generation through to stored objects."""
    config = load_config(preset_file)
    assert validate_config(config) == []
    specs = build_resize_specs(config, "gallery")

    bucket = await GCPBucket.create("test-bucket", store, chunk_size=512, metrics=metrics)
    receipts = await bucket.upsert_one(
        LogicalFile(
            folder_name="gallery 2026",
            file_name="sunset.jpg",
            file_data=base64.b64encode(jpeg_bytes).decode(),
            file_metadata={"album": "summer"},
            resize_options=specs,
        )
    )

    assert [r.file_path for r in receipts] == [
        "gallery-2026/sunset.jpg",
        "gallery-2026/thumb-sunset.webp",
        "gallery-2026/half-sunset.jpg",
        "gallery-2026/icon-icon.png",
    ]
    assert [r.file_content_type for r in receipts] == [
        "image/jpeg",
        "image/webp",
        "image/jpeg",
        "image/png",
    ]

    thumb = await bucket.download("gallery-2026/thumb-sunset.webp")
    icon = await bucket.download("gallery-2026/icon-icon.png")
    assert Image.open(io.BytesIO(thumb)).size == (16, 16)
    assert Image.open(io.BytesIO(icon)).size == (8, 8)
    assert await bucket.download("gallery-2026/sunset.jpg") == jpeg_bytes

    memory_bucket = store.bucket("test-bucket")
    assert all(md == {"album": "summer"} for md in memory_bucket.metadata.values())
    for path, writes in memory_bucket.chunk_writes.items():
        assert all(size <= 512 for size in writes)
        assert sum(writes) == len(memory_bucket.objects[path])


@pytest.mark.asyncio
async def test_mixed_batch_with_blob_sources(store, metrics, png_bytes, text_bytes):
    """Test bytes, base64 and blob inputs in one concurrent batch."""
    bucket = await GCPBucket.create("test-bucket", store, chunk_size=64, metrics=metrics)

    receipts = await bucket.upsert_many(
        [
            LogicalFile(folder_name="docs", file_name="readme.txt", file_data=text_bytes),
            LogicalFile(folder_name="img", file_name="red.png", file_data=io.BytesIO(png_bytes)),
            LogicalFile(
                folder_name="img",
                file_name="copy.png",
                file_data=base64.b64encode(png_bytes).decode(),
            ),
        ]
    )

    assert [r.file_path for r in receipts] == ["docs/readme.txt", "img/red.png", "img/copy.png"]
    memory_bucket = store.bucket("test-bucket")
    assert memory_bucket.objects["img/red.png"] == memory_bucket.objects["img/copy.png"] == png_bytes
    assert metrics.registry.get_sample_value(
        "upload_requests_total", {"status": "success"}
    ) == 3.0
    assert metrics.registry.get_sample_value("active_requests", {"operation": "upsert"}) == 0.0
