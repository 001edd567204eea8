"""Custom exceptions for the gallery ingest pipeline."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional, Type


class GalleryIngestError(Exception):
    """Base exception for all gallery ingest errors."""


class ConfigurationError(GalleryIngestError):
    """Error raised for invalid configuration options."""


class StageError(GalleryIngestError):
    """Error tagged with the pipeline stage and the offending file."""

    stage = "unknown"
    # Set by the batch coordinator when it aborts a fail-fast batch
    batch_result: Any = None

    def __init__(
        self,
        message: str,
        filename: Optional[str] = None,
        stage: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.filename = filename
        if stage is not None:
            self.stage = stage

    def with_filename(self, filename: str) -> "StageError":
        """Tag the error with a filename unless it already carries one."""
        if self.filename is None:
            self.filename = filename
        return self

    def __str__(self) -> str:
        if self.filename:
            return f"[{self.stage}] {self.filename}: {self.message}"
        return f"[{self.stage}] {self.message}"


class DecodeError(StageError):
    """Input bytes could not be decoded as an image."""

    stage = "decode"


class RenderError(StageError):
    """Watermark composition failed."""

    stage = "render"


class EncodeError(StageError):
    """Target format unsupported or the encoder produced no data."""

    stage = "encode"


class UploadError(StageError):
    """Storage or record store rejected the write."""

    stage = "upload"


class ProcessingTimeoutError(StageError, TimeoutError):
    """A single file exceeded its wall-clock budget."""

    stage = "timeout"


class ReconciliationError(StageError):
    """Album photo count could not be refreshed after uploads."""

    stage = "reconcile"


@contextmanager
def stage_errors(
    error_cls: Type[StageError], filename: Optional[str] = None
) -> Iterator[Any]:
    """Re-tag unexpected exceptions raised inside the block as ``error_cls``."""
    try:
        yield
    except StageError as exc:
        if filename:
            exc.with_filename(filename)
        raise
    except Exception as exc:  # noqa: BLE001
        raise error_cls(str(exc) or type(exc).__name__, filename=filename) from exc
