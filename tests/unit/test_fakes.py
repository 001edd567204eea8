"""Tests for fake implementations to ensure they work correctly."""

import io

import pytest
from PIL import Image

from gallery_ingest.core.models import PhotoDraft
from gallery_ingest.core.observability import LogContext
from gallery_ingest.testing.fakes import (
    FakeS3Client,
    FakeLogger,
    InMemoryRecordStore,
    ProgressRecorder,
    S3Bucket,
    create_test_image,
    make_corrupt_upload,
    make_upload,
    setup_test_storage,
)


def _draft(album_id="42", filename="a.jpg"):
    return PhotoDraft(
        album_id=album_id,
        url="https://cdn.example.test/w.webp",
        original_url="https://cdn.example.test/o.webp",
        filename=filename,
        storage_key="w.webp",
        original_storage_key="o.webp",
        width=10,
        height=10,
    )


class TestFakeS3Client:
    """Tests for FakeS3Client to ensure it behaves correctly."""

    def test_create_bucket(self):
        """Test bucket creation."""
        client = FakeS3Client()

        bucket = client.create_bucket("test-bucket")

        assert bucket.name == "test-bucket"
        assert len(bucket.objects) == 0
        assert client.get_bucket("test-bucket") is bucket

    def test_get_nonexistent_bucket(self):
        """Test getting nonexistent bucket."""
        client = FakeS3Client()

        assert client.get_bucket("nonexistent") is None

    def test_put_object_stores_body_and_type(self):
        """Test successful object upload."""
        client = FakeS3Client()
        client.create_bucket("test-bucket")
        test_data = b"test image data"

        response = client.put_object(
            Bucket="test-bucket",
            Key="a_original.webp",
            Body=test_data,
            ContentType="image/webp",
        )

        assert response["ResponseMetadata"]["HTTPStatusCode"] == 200
        stored = client.get_bucket("test-bucket").get_object("a_original.webp")
        assert stored.body == test_data
        assert stored.content_type == "image/webp"

    def test_put_object_bucket_not_found(self):
        """Test putting object to nonexistent bucket."""
        client = FakeS3Client()

        with pytest.raises(Exception, match="Bucket.*not found"):
            client.put_object(
                Bucket="nonexistent", Key="k", Body=b"data", ContentType="image/webp"
            )

    def test_delete_object(self):
        client = FakeS3Client()
        bucket = client.create_bucket("test-bucket")
        bucket.add_object("k", b"data")

        client.delete_object(Bucket="test-bucket", Key="k")
        client.delete_object(Bucket="test-bucket", Key="already-gone")

        assert bucket.objects == {}

    def test_failure_mode(self):
        """Test failure mode configuration."""
        client = FakeS3Client()
        client.create_bucket("test-bucket")
        client.set_failure_mode(True, "Custom error message")

        with pytest.raises(Exception, match="Custom error message"):
            client.put_object(
                Bucket="test-bucket", Key="k", Body=b"data", ContentType="image/webp"
            )

    def test_fail_only_matching_keys(self):
        client = FakeS3Client()
        client.create_bucket("test-bucket")
        client.set_failure_mode(False, "Suffix failure")
        client.fail_keys_ending_with("_watermarked.webp")

        client.put_object(
            Bucket="test-bucket", Key="a_original.webp", Body=b"x", ContentType="image/webp"
        )
        with pytest.raises(Exception, match="Suffix failure"):
            client.put_object(
                Bucket="test-bucket",
                Key="a_watermarked.webp",
                Body=b"x",
                ContentType="image/webp",
            )

    def test_operation_count_tracking(self):
        """Test that operations are counted correctly."""
        client = FakeS3Client()
        client.create_bucket("test-bucket")

        client.put_object(Bucket="test-bucket", Key="k", Body=b"d", ContentType="image/webp")
        client.delete_object(Bucket="test-bucket", Key="k")

        assert client.operation_count == 2


class TestS3Bucket:
    def test_add_and_get_object(self):
        bucket = S3Bucket(name="b")
        bucket.add_object("albums/1/a.webp", b"1", "image/jpeg")

        assert bucket.get_object("albums/1/a.webp").content_type == "image/jpeg"
        assert bucket.get_object("albums/2/b.webp") is None


class TestInMemoryRecordStore:
    def test_insert_and_count(self):
        store = InMemoryRecordStore()
        store.add_existing("42", 2)

        record = store.insert_photo(_draft())

        assert record.album_id == "42"
        assert store.count_photos("42") == 3
        assert store.count_photos("other") == 0

    def test_insert_failure(self):
        store = InMemoryRecordStore()
        store.fail_insert_for.add("a.jpg")

        with pytest.raises(Exception, match="a.jpg"):
            store.insert_photo(_draft())
        assert store.photos == []

    def test_reconcile_failure(self):
        store = InMemoryRecordStore()
        store.fail_reconcile = True

        with pytest.raises(Exception):
            store.count_photos("42")


class TestFakeLogger:
    """Tests for FakeLogger."""

    def test_logging_levels(self):
        logger = FakeLogger()

        logger.debug("Debug message")
        logger.info("Info message", extra_data="test")
        logger.warning("Warning message")
        logger.error("Error message")

        assert len(logger.logs) == 4
        assert logger.get_logs("INFO")[0]["extra_data"] == "test"
        assert len(logger.get_logs("ERROR")) == 1

    def test_context_fields_recorded(self):
        logger = FakeLogger()
        context = LogContext(album_id="42").for_file("a.jpg").at_stage("upload")

        logger.info("Stored", context.with_metadata(attempt=1))
        logger.info("No context")

        entry = logger.logs[0]
        assert entry["correlation_id"] == context.correlation_id
        assert (entry["album_id"], entry["upload"], entry["stage"]) == ("42", "a.jpg", "upload")
        assert entry["attempt"] == 1
        assert "stage" not in logger.logs[1]


class TestHelpers:
    def test_progress_recorder(self):
        recorder = ProgressRecorder()
        recorder(0, 2, "processing a.jpg")
        recorder(2, 2, "2/2 done")

        assert recorder.currents == [0, 2]
        assert recorder.events[-1].message == "2/2 done"

    def test_create_test_image(self):
        image = Image.open(io.BytesIO(create_test_image(50, 30, image_format="PNG")))
        assert image.size == (50, 30)
        assert image.format == "PNG"

    def test_uploads(self):
        assert make_upload("a.jpg").media_type == "image/jpeg"
        assert make_corrupt_upload().content

    def test_setup_test_storage(self):
        client, storage = setup_test_storage("bucket-x")

        url = storage.upload("k.webp", b"data", "image/webp")

        assert url == "https://cdn.example.test/k.webp"
        assert client.get_bucket("bucket-x").get_object("k.webp").body == b"data"
