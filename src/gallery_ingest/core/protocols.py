"""Protocol definitions for dependency injection and testability."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Protocol, Sequence

from .models import (
    BatchResult,
    PhotoDraft,
    PhotoRecord,
    ProcessedImage,
    UploadFile,
    WatermarkConfig,
)

ProgressCallback = Callable[[int, int, str], None]


class S3ClientProtocol(Protocol):
    """Protocol for the S3 client operations the storage adapter uses."""

    def put_object(
        self, Bucket: str, Key: str, Body: bytes, ContentType: str
    ) -> Dict[str, Any]:
        """Put object to S3."""
        ...

    def delete_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        """Delete object from S3."""
        ...


class PhotoStorageProtocol(Protocol):
    """Object storage that receives the encoded variants."""

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return a resolvable URL."""
        ...

    def delete(self, key: str) -> None:
        """Remove a previously stored object."""
        ...


class PhotoRecordStoreProtocol(Protocol):
    """Row store that links photos to albums."""

    def insert_photo(self, draft: PhotoDraft) -> PhotoRecord:
        """Insert a photo row and return it."""
        ...

    def count_photos(self, album_id: str) -> int:
        """Count photo rows currently linked to the album."""
        ...

    def update_album_photo_count(self, album_id: str, count: int) -> None:
        """Write the denormalized photo count on the album."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...


class ProcessingService(ABC):
    """Abstract service turning one upload into its two encoded variants."""

    @abstractmethod
    def process_image(
        self,
        upload: UploadFile,
        watermark: Optional[WatermarkConfig] = None,
        quality: Optional[float] = None,
        checkpoint: Optional[Callable[[str], None]] = None,
        log_context: Any = None,
    ) -> ProcessedImage:
        """Process a single image."""
        ...


class BatchUploader(ABC):
    """Abstract batch uploader."""

    @abstractmethod
    def upload_batch(
        self,
        album_id: str,
        files: Sequence[UploadFile],
        watermark: Optional[WatermarkConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Process and persist a batch of files for one album."""
        ...
