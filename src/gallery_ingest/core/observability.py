"""Observability utilities for pipeline logging and stage timings."""

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, List, Optional

from .logging_config import get_logger


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class LogContext:
    """
    Where in the pipeline a log record comes from.

    One context is created per batch; per-file and per-stage contexts are
    derived from it so every record of the batch shares its correlation id.
    """

    correlation_id: str = field(default_factory=new_correlation_id)
    album_id: Optional[str] = None
    filename: Optional[str] = None
    stage: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def for_file(self, filename: str) -> "LogContext":
        return replace(self, filename=filename, stage=None)

    def at_stage(self, stage: str) -> "LogContext":
        return replace(self, stage=stage)

    def with_metadata(self, **kwargs) -> "LogContext":
        """Create new context with additional metadata."""
        return replace(self, metadata={**self.metadata, **kwargs})

    def as_extra(self) -> Dict[str, str]:
        """Record attributes consumed by the pipeline log format."""
        return {
            "correlation_id": self.correlation_id,
            "album_id": self.album_id or "-",
            "upload": self.filename or "-",
            "stage": self.stage or "-",
        }


class StructuredLogger:
    """Logger that stamps records with a LogContext and appends key=value fields."""

    def __init__(self, name: str, level: Optional[int] = None):
        self._logger = get_logger(name)
        if level is not None:
            self._logger.setLevel(level)

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self,
        level: int,
        message: str,
        context: Optional[LogContext] = None,
        **kwargs,
    ):
        fields = {**context.metadata, **kwargs} if context else kwargs
        if fields:
            message = f"{message} ({', '.join(f'{k}={v}' for k, v in fields.items())})"
        extra = context.as_extra() if context else None
        self._logger.log(level, message, extra=extra)

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs):
        self._log(logging.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs):
        self._log(logging.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[LogContext] = None, **kwargs):
        self._log(logging.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[LogContext] = None, **kwargs):
        self._log(logging.ERROR, message, context, **kwargs)


@dataclass
class StageTiming:
    """Timing of one pipeline stage for one file."""

    stage: str
    filename: Optional[str]
    started: float
    finished: float
    success: bool
    error: Optional[str] = None

    @property
    def seconds(self) -> float:
        return self.finished - self.started


class StageMetrics:
    """Collects stage timings across a batch."""

    def __init__(self):
        self._timings: List[StageTiming] = []

    def record(self, timing: StageTiming) -> None:
        self._timings.append(timing)

    def timings(self, stage: Optional[str] = None) -> List[StageTiming]:
        if stage:
            return [t for t in self._timings if t.stage == stage]
        return list(self._timings)

    def summary(self) -> Dict[str, Dict[str, Any]]:
        """Per-stage count, failures and total seconds, in first-seen order."""
        result: Dict[str, Dict[str, Any]] = {}
        for timing in self._timings:
            entry = result.setdefault(
                timing.stage, {"count": 0, "failed": 0, "total_seconds": 0.0}
            )
            entry["count"] += 1
            entry["failed"] += 0 if timing.success else 1
            entry["total_seconds"] += timing.seconds
        return result


@contextmanager
def measure_stage(
    stage: str,
    metrics: Optional[StageMetrics],
    filename: Optional[str] = None,
) -> Iterator[None]:
    """Record the duration and outcome of the wrapped block, if collecting."""
    started = time.perf_counter()
    success = False
    error = None
    try:
        yield
        success = True
    except Exception as e:
        error = str(e)
        raise
    finally:
        if metrics is not None:
            metrics.record(
                StageTiming(
                    stage=stage,
                    filename=filename,
                    started=started,
                    finished=time.perf_counter(),
                    success=success,
                    error=error,
                )
            )
