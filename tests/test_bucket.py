"""
Unit tests for the GCPBucket facade.

Runs the full expand-then-upload path against the in-memory store.
"""

import base64
import io
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from PIL import Image

from gcp_bucket import GCPBucket
from gcp_bucket.errors import (
    BucketNotFound,
    InvalidMetadata,
    InvalidName,
    NotAnImage,
    NotReady,
    ResizeOnNonImage,
    UploadFailed,
)
from gcp_bucket.models import Fit, FormatSpec, LogicalFile, ResizeOptions, ResizeSpec
from gcp_bucket.utils.config import BucketConfig


@pytest_asyncio.fixture
async def bucket(store, metrics):
    return await GCPBucket.create("test-bucket", store, metrics=metrics)


def _cat(jpeg_bytes, **kwargs) -> LogicalFile:
    return LogicalFile(folder_name="avatars", file_name="cat.jpg", file_data=jpeg_bytes, **kwargs)


class TestReadiness:
    """Test the bucket existence gate."""

    @pytest.mark.asyncio
    async def test_create_checks_existence(self, store, metrics):
        bucket = await GCPBucket.create("test-bucket", store, metrics=metrics)

        assert bucket.ready is True
        assert store.bucket("test-bucket").exists_calls == 1

    @pytest.mark.asyncio
    async def test_ensure_ready_is_idempotent(self, store, metrics):
        bucket = GCPBucket("test-bucket", store, metrics=metrics)

        await bucket.ensure_ready()
        await bucket.ensure_ready()

        assert store.bucket("test-bucket").exists_calls == 1

    @pytest.mark.asyncio
    async def test_missing_bucket(self, store, metrics):
        with pytest.raises(BucketNotFound) as exc_info:
            await GCPBucket.create("no-such-bucket", store, metrics=metrics)

        assert exc_info.value.bucket_name == "no-such-bucket"

    @pytest.mark.asyncio
    async def test_operations_before_ready(self, store, metrics, jpeg_bytes):
        """Test storage operations raise NotReady until existence is verified."""
        bucket = GCPBucket("test-bucket", store, metrics=metrics)

        assert bucket.ready is False
        with pytest.raises(NotReady):
            await bucket.upsert_one(_cat(jpeg_bytes))
        with pytest.raises(NotReady):
            await bucket.upsert_many([_cat(jpeg_bytes)])
        with pytest.raises(NotReady):
            await bucket.download("avatars/cat.jpg")
        with pytest.raises(NotReady):
            await bucket.delete_file("avatars/cat.jpg")
        assert store.bucket("test-bucket").streams_opened == []

    def test_construction_does_no_io(self, store, metrics):
        GCPBucket("test-bucket", store, metrics=metrics)
        assert store.bucket("test-bucket").exists_calls == 0

    @pytest.mark.parametrize("name", ["", None])
    def test_bucket_name_required(self, store, metrics, name):
        with pytest.raises(ValueError, match="bucket_name"):
            GCPBucket(name, store, metrics=metrics)

    def test_store_required(self, metrics):
        with pytest.raises(ValueError, match="store"):
            GCPBucket("test-bucket", None, metrics=metrics)

    @pytest.mark.asyncio
    async def test_from_config(self, store, metrics, text_bytes):
        config = BucketConfig(bucket_name="test-bucket", encrypt_key="secret", chunk_size=100)

        bucket = await GCPBucket.from_config(config, store=store, metrics=metrics)
        await bucket.upsert_one(
            LogicalFile(folder_name="docs", file_name="notes.txt", file_data=text_bytes)
        )

        memory_bucket = store.bucket("test-bucket")
        assert bucket.ready is True
        assert memory_bucket.encryption_keys["docs/notes.txt"] == b"secret"
        assert len(memory_bucket.chunk_writes["docs/notes.txt"]) == 4


class FakeStorageClient:
    """Stands in for google.cloud.storage.Client and records how it was built."""

    instances = []

    def __init__(self, project=None, credentials_path=None):
        self.project = project
        self.credentials_path = credentials_path
        FakeStorageClient.instances.append(self)

    @classmethod
    def from_service_account_json(cls, json_credentials_path, project=None):
        return cls(project=project, credentials_path=json_credentials_path)

    def bucket(self, name):
        bucket = MagicMock()
        bucket.name = name
        bucket.exists.return_value = True
        return bucket


class TestFromConfigClient:
    """Test the storage client built when no store is passed."""

    @pytest.fixture(autouse=True)
    def fake_client(self, monkeypatch):
        FakeStorageClient.instances = []
        monkeypatch.setattr("google.cloud.storage.Client", FakeStorageClient)

    @pytest.mark.asyncio
    async def test_service_account_credentials_used(self, metrics):
        config = BucketConfig(
            bucket_name="test-bucket",
            project="media-project",
            google_credentials_path="/secrets/sa.json",
        )

        bucket = await GCPBucket.from_config(config, metrics=metrics)

        (client,) = FakeStorageClient.instances
        assert client.credentials_path == "/secrets/sa.json"
        assert client.project == "media-project"
        assert bucket.ready is True

    @pytest.mark.asyncio
    async def test_default_credentials(self, metrics):
        config = BucketConfig(bucket_name="test-bucket", project="media-project")

        await GCPBucket.from_config(config, metrics=metrics)

        (client,) = FakeStorageClient.instances
        assert client.credentials_path is None
        assert client.project == "media-project"


class TestUpsertOne:
    @pytest.mark.asyncio
    async def test_single_file_returns_list(self, bucket, store, jpeg_bytes):
        receipts = await bucket.upsert_one(_cat(jpeg_bytes, file_metadata={"owner": "u1"}))

        assert len(receipts) == 1
        assert receipts[0].file_path == "avatars/cat.jpg"
        assert receipts[0].file_url == "https://storage.googleapis.com/test-bucket/avatars/cat.jpg"
        assert receipts[0].file_content_type == "image/jpeg"
        assert store.bucket("test-bucket").metadata["avatars/cat.jpg"] == {"owner": "u1"}

    @pytest.mark.asyncio
    async def test_variants_uploaded_in_order(self, bucket, store, jpeg_bytes):
        """Test the original and each variant are written and receipted in order."""
        receipts = await bucket.upsert_one(
            _cat(
                jpeg_bytes,
                resize_options=[
                    ResizeSpec("small-", width=16, height=16, fit=Fit.COVER, format=FormatSpec("webp")),
                    ResizeSpec("medium-", width=32),
                ],
            )
        )

        assert [r.file_path for r in receipts] == [
            "avatars/cat.jpg",
            "avatars/small-cat.webp",
            "avatars/medium-cat.jpg",
        ]
        assert receipts[1].file_type == "webp"
        objects = store.bucket("test-bucket").objects
        assert Image.open(io.BytesIO(objects["avatars/small-cat.webp"])).size == (16, 16)

    @pytest.mark.asyncio
    async def test_progress_reported_per_object(self, bucket, jpeg_bytes):
        progress = {}

        await bucket.upsert_one(
            _cat(jpeg_bytes, resize_options=[ResizeSpec("small-", width=16)]),
            progress_callback=lambda path, pct: progress.setdefault(path, []).append(pct),
        )

        assert set(progress) == {"avatars/cat.jpg", "avatars/small-cat.jpg"}
        for percentages in progress.values():
            assert percentages == sorted(percentages)
            assert percentages[-1] == 100

    @pytest.mark.asyncio
    async def test_base64_payload(self, bucket, store, png_bytes):
        await bucket.upsert_one(
            LogicalFile(
                folder_name="images",
                file_name="red.png",
                file_data=base64.b64encode(png_bytes).decode(),
            )
        )
        assert store.bucket("test-bucket").objects["images/red.png"] == png_bytes

    @pytest.mark.asyncio
    async def test_resize_on_non_image(self, bucket, store, text_bytes):
        """Test nothing is written when resize is requested for non-image data."""
        with pytest.raises(ResizeOnNonImage):
            await bucket.upsert_one(
                LogicalFile(
                    folder_name="docs",
                    file_name="notes.txt",
                    file_data=text_bytes,
                    resize_options=[ResizeSpec("small-", width=10)],
                )
            )

        assert store.bucket("test-bucket").streams_opened == []

    @pytest.mark.asyncio
    async def test_invalid_name(self, bucket, store, text_bytes):
        with pytest.raises(InvalidName):
            await bucket.upsert_one(
                LogicalFile(folder_name="docs", file_name="???", file_data=text_bytes)
            )
        assert store.bucket("test-bucket").streams_opened == []

    def test_non_string_metadata(self, text_bytes):
        with pytest.raises(InvalidMetadata):
            LogicalFile(
                folder_name="docs",
                file_name="notes.txt",
                file_data=text_bytes,
                file_metadata={"count": 3},
            )


class TestUpsertMany:
    @pytest.mark.asyncio
    async def test_receipts_align_with_flattened_order(self, bucket, jpeg_bytes, text_bytes):
        """Test [file1 original, file1 variants..., file2 original]."""
        receipts = await bucket.upsert_many(
            [
                _cat(jpeg_bytes, resize_options=[ResizeSpec("small-", width=16)]),
                LogicalFile(folder_name="docs", file_name="notes.txt", file_data=text_bytes),
            ]
        )

        assert [r.file_path for r in receipts] == [
            "avatars/cat.jpg",
            "avatars/small-cat.jpg",
            "docs/notes.txt",
        ]

    @pytest.mark.asyncio
    async def test_empty_batch(self, bucket):
        assert await bucket.upsert_many([]) == []

    @pytest.mark.asyncio
    async def test_expansion_failure_writes_nothing(self, bucket, store, jpeg_bytes, text_bytes):
        """Test one bad logical file stops the batch before any upload."""
        with pytest.raises(ResizeOnNonImage):
            await bucket.upsert_many(
                [
                    _cat(jpeg_bytes),
                    LogicalFile(
                        folder_name="docs",
                        file_name="notes.txt",
                        file_data=text_bytes,
                        resize_options=[ResizeSpec("small-", width=10)],
                    ),
                ]
            )

        assert store.bucket("test-bucket").streams_opened == []

    @pytest.mark.asyncio
    async def test_upload_failure_does_not_cancel_siblings(self, bucket, store, jpeg_bytes, text_bytes):
        memory_bucket = store.bucket("test-bucket")
        memory_bucket.fail_paths.add("docs/notes.txt")

        with pytest.raises(UploadFailed):
            await bucket.upsert_many(
                [
                    _cat(jpeg_bytes),
                    LogicalFile(folder_name="docs", file_name="notes.txt", file_data=text_bytes),
                ]
            )

        assert memory_bucket.objects["avatars/cat.jpg"] == jpeg_bytes
        assert "docs/notes.txt" not in memory_bucket.objects


class TestDeleteAndDownload:
    @pytest.mark.asyncio
    async def test_download_round_trip(self, bucket, text_bytes):
        await bucket.upsert_one(
            LogicalFile(folder_name="docs", file_name="notes.txt", file_data=text_bytes)
        )

        assert await bucket.download("docs/notes.txt") == text_bytes

    @pytest.mark.asyncio
    async def test_download_merges_metadata(self, bucket, store, text_bytes):
        await bucket.upsert_one(
            LogicalFile(
                folder_name="docs",
                file_name="notes.txt",
                file_data=text_bytes,
                file_metadata={"owner": "u1", "status": "draft"},
            )
        )

        await bucket.download("docs/notes.txt", metadata_patch={"status": "read"})

        assert store.bucket("test-bucket").metadata["docs/notes.txt"] == {
            "owner": "u1",
            "status": "read",
        }

    @pytest.mark.asyncio
    async def test_download_rejects_bad_patch(self, bucket):
        with pytest.raises(InvalidMetadata):
            await bucket.download("docs/notes.txt", metadata_patch={"n": 1})

    @pytest.mark.asyncio
    async def test_download_uses_encryption_key(self, store, metrics, text_bytes):
        bucket = await GCPBucket.create("test-bucket", store, encrypt_key="secret", metrics=metrics)
        memory_bucket = store.bucket("test-bucket")
        memory_bucket.objects["docs/notes.txt"] = text_bytes

        await bucket.download("docs/notes.txt")

        assert memory_bucket.encryption_keys["docs/notes.txt"] == b"secret"

    @pytest.mark.asyncio
    async def test_download_missing_records_error(self, bucket, metrics):
        with pytest.raises(KeyError):
            await bucket.download("docs/missing.txt")

        assert metrics.registry.get_sample_value(
            "gcs_api_errors_total", {"operation": "download", "error_type": "KeyError"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_delete(self, bucket, store, text_bytes):
        await bucket.upsert_one(
            LogicalFile(folder_name="docs", file_name="notes.txt", file_data=text_bytes)
        )

        await bucket.delete_file("docs/notes.txt")

        assert "docs/notes.txt" not in store.bucket("test-bucket").objects

    @pytest.mark.asyncio
    async def test_delete_missing_propagates(self, bucket, metrics):
        with pytest.raises(KeyError):
            await bucket.delete_file("docs/missing.txt")

        assert metrics.registry.get_sample_value(
            "gcs_api_errors_total", {"operation": "delete", "error_type": "KeyError"}
        ) == 1.0


class TestImageHelpers:
    """Test helpers that work on image data without touching the bucket."""

    @pytest.mark.asyncio
    async def test_is_image(self, store, metrics, png_bytes, text_bytes):
        bucket = GCPBucket("test-bucket", store, metrics=metrics)

        assert await bucket.is_image(png_bytes) is True
        assert await bucket.is_image(base64.b64encode(png_bytes).decode()) is True
        assert await bucket.is_image(text_bytes) is False

    @pytest.mark.asyncio
    async def test_get_image(self, bucket, png_bytes):
        data = await bucket.get_image(
            png_bytes, ResizeOptions(width=10, height=10, fit=Fit.FILL, format=FormatSpec("webp"))
        )
        image = Image.open(io.BytesIO(data))

        assert image.format == "WEBP"
        assert image.size == (10, 10)

    @pytest.mark.asyncio
    async def test_get_image_size_by_factor(self, bucket, jpeg_bytes):
        scaled = await bucket.get_image_size_by_factor(jpeg_bytes, 0.5)
        assert (scaled.width, scaled.height) == (32, 16)

    @pytest.mark.asyncio
    async def test_get_image_size_by_factor_requires_factor(self, bucket, jpeg_bytes):
        with pytest.raises(ValueError, match="scale_factor"):
            await bucket.get_image_size_by_factor(jpeg_bytes, 0)

    @pytest.mark.asyncio
    async def test_get_image_metadata(self, bucket, jpeg_bytes):
        info = await bucket.get_image_metadata(jpeg_bytes)

        assert (info.width, info.height) == (64, 32)
        assert info.format == "JPEG"
        assert info.has_alpha is False

    @pytest.mark.asyncio
    async def test_helpers_reject_non_images(self, bucket, text_bytes):
        with pytest.raises(NotAnImage):
            await bucket.get_image(text_bytes, ResizeOptions(width=10))
        with pytest.raises(NotAnImage):
            await bucket.get_image_size_by_factor(text_bytes, 0.5)
        with pytest.raises(NotAnImage):
            await bucket.get_image_metadata(text_bytes)
