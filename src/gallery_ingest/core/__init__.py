"""Core components of the gallery ingest pipeline."""

from .decoder import decode_image, open_image_source
from .encoder import ImageEncoder, supports_target_format
from .exceptions import (
    ConfigurationError,
    DecodeError,
    EncodeError,
    GalleryIngestError,
    ProcessingTimeoutError,
    ReconciliationError,
    RenderError,
    StageError,
    UploadError,
)
from .logging_config import get_logger, setup_logger
from .models import (
    BatchResult,
    FailurePolicy,
    IngestSettings,
    PhotoRecord,
    ProcessedImage,
    ProgressEvent,
    UploadFile,
    UploadStatus,
    WatermarkConfig,
    WatermarkPosition,
)
from .services import (
    BatchUploadCoordinator,
    CancellationToken,
    ImageProcessorService,
    PhotoPersistenceService,
)
from .watermark import WatermarkRenderer, compute_font_size

__all__ = [
    "BatchResult",
    "BatchUploadCoordinator",
    "CancellationToken",
    "ConfigurationError",
    "DecodeError",
    "EncodeError",
    "FailurePolicy",
    "GalleryIngestError",
    "ImageEncoder",
    "ImageProcessorService",
    "IngestSettings",
    "PhotoPersistenceService",
    "PhotoRecord",
    "ProcessedImage",
    "ProcessingTimeoutError",
    "ProgressEvent",
    "ReconciliationError",
    "RenderError",
    "StageError",
    "UploadError",
    "UploadFile",
    "UploadStatus",
    "WatermarkConfig",
    "WatermarkPosition",
    "WatermarkRenderer",
    "compute_font_size",
    "decode_image",
    "get_logger",
    "open_image_source",
    "setup_logger",
    "supports_target_format",
]
