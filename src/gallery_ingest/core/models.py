"""Shared data models for the gallery ingest pipeline."""

import os
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from PIL import ImageColor
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_WATERMARK_TEXT = "STUDIO"
DEFAULT_QUALITY = 0.85


class WatermarkPosition(str, Enum):
    """Layout strategy for the watermark."""

    CENTER = "center"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"
    DIAGONAL_TILE = "diagonal-tile"

    @classmethod
    def _missing_(cls, value):
        # Older clients send plain "diagonal"
        if isinstance(value, str) and value.lower() == "diagonal":
            return cls.DIAGONAL_TILE
        return None


class WatermarkConfig(BaseModel):
    """Immutable watermark settings, merged with defaults once per call."""

    model_config = ConfigDict(frozen=True)

    text: str = DEFAULT_WATERMARK_TEXT
    font_size: Optional[int] = Field(default=None, gt=0)
    font_family: str = "DejaVuSans-Bold.ttf"
    color: Union[str, Tuple[int, int, int]] = "#ffffff"
    opacity: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    position: WatermarkPosition = WatermarkPosition.DIAGONAL_TILE

    @field_validator("color")
    @classmethod
    def _check_color(cls, value):
        if isinstance(value, str):
            # Raises ValueError for unknown colour specs
            ImageColor.getrgb(value)
        elif any(not 0 <= channel <= 255 for channel in value):
            raise ValueError(f"RGB channels must be within 0..255: {value}")
        return value

    @property
    def rgb(self) -> Tuple[int, int, int]:
        if isinstance(self.color, str):
            return ImageColor.getrgb(self.color)[:3]
        return tuple(self.color)  # type: ignore[return-value]

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    def resolved_opacity(self) -> float:
        """Explicit opacity, or the per-layout default."""
        if self.opacity is not None:
            return self.opacity
        if self.position in (WatermarkPosition.BOTTOM_LEFT, WatermarkPosition.BOTTOM_RIGHT):
            return 0.6
        return 0.4

    def merged(self, overrides: Optional["WatermarkConfig"]) -> "WatermarkConfig":
        """Return a copy with the fields explicitly set on ``overrides`` applied."""
        if overrides is None:
            return self
        return self.model_copy(update=overrides.model_dump(exclude_unset=True))


class UploadFile(BaseModel):
    """
    One user-supplied file with its name and declared media type.

    The bytes are either held in memory (``content``) or read from ``path``
    when the pipeline reaches the file.
    """

    content: Optional[bytes] = None
    path: Optional[Path] = None
    filename: str
    media_type: Optional[str] = None

    @model_validator(mode="after")
    def _check_source(self):
        if self.content is None and self.path is None:
            raise ValueError("an upload needs either content or a path")
        return self

    def read(self) -> bytes:
        """Return the file bytes, reading ``path`` if nothing is held in memory."""
        if self.content is not None:
            return self.content
        return self.path.read_bytes()

    @property
    def stem(self) -> str:
        return os.path.splitext(os.path.basename(self.filename))[0]


class ProcessedImage(BaseModel):
    """Clean and watermarked encodings of one input file."""

    original_blob: bytes
    watermarked_blob: bytes
    width: int
    height: int
    format: str = "WEBP"


class UploadStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


class UploadTask(BaseModel):
    """Transient per-file state within one batch call."""

    filename: str
    index: int
    status: UploadStatus = UploadStatus.PENDING


class ProgressEvent(BaseModel):
    current: int
    total: int
    message: str


class PhotoDraft(BaseModel):
    """Record fields handed to the record store once both blobs are stored."""

    album_id: str
    url: str
    original_url: str
    filename: str
    storage_key: str
    original_storage_key: str
    width: int
    height: int
    sort_order: int = 0


class PhotoRecord(BaseModel):
    """A persisted photo row, owned by the external record store."""

    id: str
    album_id: str
    url: str
    original_url: str
    filename: str
    is_selected: bool = False
    is_favorite: bool = False
    sort_order: int = 0


class FailurePolicy(str, Enum):
    """How the coordinator reacts to a failed file."""

    COLLECT = "collect"
    FAIL_FAST = "fail_fast"


class BatchItemError(BaseModel):
    filename: str
    stage: str
    message: str
    error_type: str


class BatchItemResult(BaseModel):
    """Tagged outcome for one file: a record or an error, never both."""

    index: int
    filename: str
    record: Optional[PhotoRecord] = None
    error: Optional[BatchItemError] = None

    @property
    def ok(self) -> bool:
        return self.record is not None


class BatchResult(BaseModel):
    """Outcome of one ``upload_batch`` call."""

    album_id: str
    items: List[BatchItemResult] = Field(default_factory=list)
    tasks: List[UploadTask] = Field(default_factory=list)
    cancelled: bool = False
    photo_count: Optional[int] = None
    warnings: List[str] = Field(default_factory=list)

    @property
    def records(self) -> List[PhotoRecord]:
        return [item.record for item in self.items if item.record is not None]

    @property
    def failures(self) -> List[BatchItemError]:
        return [item.error for item in self.items if item.error is not None]


def _env_float(name: str) -> Optional[float]:
    """Parse a float variable; None only when it is unset or blank."""
    value = os.getenv(name, "").strip()
    return float(value) if value else None


class IngestSettings(BaseModel):
    """Configuration for the ingest pipeline."""

    bucket: str = ""
    key_prefix: str = "albums"
    public_base_url: Optional[str] = None
    quality: float = Field(default=DEFAULT_QUALITY, ge=0.0, le=1.0)
    target_format: str = "WEBP"
    fallback_format: str = "JPEG"
    failure_policy: FailurePolicy = FailurePolicy.COLLECT
    per_file_timeout: Optional[float] = Field(default=None, gt=0)
    render_fallback: bool = False
    debug: bool = False

    @classmethod
    def from_env(cls, **overrides) -> "IngestSettings":
        """Build settings from GALLERY_* environment variables."""
        values = {
            "bucket": os.getenv("GALLERY_BUCKET", ""),
            "key_prefix": os.getenv("GALLERY_KEY_PREFIX", "albums"),
            "public_base_url": os.getenv("GALLERY_PUBLIC_BASE_URL") or None,
            "target_format": os.getenv("GALLERY_TARGET_FORMAT", "WEBP"),
            "fallback_format": os.getenv("GALLERY_FALLBACK_FORMAT", "JPEG"),
            "failure_policy": os.getenv("GALLERY_FAILURE_POLICY", "collect"),
            "render_fallback": os.getenv("GALLERY_RENDER_FALLBACK", "").lower()
            in ("1", "true", "yes"),
        }
        for field_name, env_name in (
            ("quality", "GALLERY_QUALITY"),
            ("per_file_timeout", "GALLERY_PER_FILE_TIMEOUT"),
        ):
            value = _env_float(env_name)
            if value is not None:
                values[field_name] = value
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
