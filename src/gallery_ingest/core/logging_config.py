"""
Logging setup for the gallery ingest pipeline.

Every record written through the ``gallery-ingest`` logger tree carries the
batch correlation id plus the album, upload and stage it concerns, so a
single batch can be followed through the output line by line.
"""

import os
import sys
import logging
from typing import IO, Optional

ROOT_LOGGER = "gallery-ingest"

# Record attributes filled from the pipeline's log context. ``upload`` holds
# the file name; ``filename`` is taken by LogRecord for the source file.
PIPELINE_FIELDS = ("correlation_id", "album_id", "upload", "stage")

PIPELINE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | [%(correlation_id)s] "
    "album=%(album_id)s upload=%(upload)s stage=%(stage)s | %(message)s"
)


class PipelineContextFilter(logging.Filter):
    """Fill pipeline fields missing from a record with ``-``."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name in PIPELINE_FIELDS:
            if getattr(record, name, None) is None:
                setattr(record, name, "-")
        return True


def make_handler(stream: Optional[IO[str]] = None) -> logging.Handler:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(PIPELINE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(PipelineContextFilter())
    return handler


def setup_logger(
    level: Optional[str] = None, stream: Optional[IO[str]] = None
) -> logging.Logger:
    """
    Configure the ``gallery-ingest`` root logger once.

    Args:
        level: Log level override (defaults to ``LOG_LEVEL`` or INFO)
        stream: Output stream for the first configuration (defaults to stdout)

    Returns:
        The root pipeline logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if not logger.handlers:
        logger.addHandler(make_handler(stream))
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Return a logger inside the pipeline tree.

    Names outside the tree are nested under it, so every component shares the
    root handler and its format.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        setup_logger()
    if name == ROOT_LOGGER:
        return root
    if not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
