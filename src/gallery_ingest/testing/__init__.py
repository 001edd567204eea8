"""Testing utilities and fakes for the gallery ingest pipeline."""

from .fakes import (
    FakeLogger,
    FakeS3Client,
    InMemoryRecordStore,
    ProgressRecorder,
    S3Bucket,
    S3Object,
    create_test_image,
    make_corrupt_upload,
    make_upload,
    setup_test_storage,
)

__all__ = [
    "FakeLogger",
    "FakeS3Client",
    "InMemoryRecordStore",
    "ProgressRecorder",
    "S3Bucket",
    "S3Object",
    "create_test_image",
    "make_corrupt_upload",
    "make_upload",
    "setup_test_storage",
]
