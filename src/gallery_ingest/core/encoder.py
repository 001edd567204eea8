"""Lossy encoding of surfaces, with a one-time codec support probe."""

import io
from typing import Dict, Optional, Tuple

from PIL import Image, features

from .exceptions import ConfigurationError, EncodeError
from .logging_config import get_logger
from .models import DEFAULT_QUALITY
from .protocols import LoggerProtocol

# Pillow format name -> (file extension, content type)
FORMAT_INFO: Dict[str, Tuple[str, str]] = {
    "WEBP": ("webp", "image/webp"),
    "JPEG": ("jpg", "image/jpeg"),
    "PNG": ("png", "image/png"),
}

_FEATURE_NAMES = {"WEBP": "webp", "JPEG": "jpg"}


def supports_target_format(fmt: str = "WEBP") -> bool:
    """Report whether this Pillow build can write ``fmt``."""
    fmt = fmt.upper()
    if fmt not in FORMAT_INFO:
        return False
    feature = _FEATURE_NAMES.get(fmt)
    if feature is not None and not features.check(feature):
        return False
    Image.init()
    return fmt in Image.SAVE


def quality_to_pillow(quality: float) -> int:
    """Map a ``[0, 1]`` quality to Pillow's 0..100 scale."""
    if not 0.0 <= quality <= 1.0:
        raise ConfigurationError(f"quality must be within [0, 1], got {quality}")
    return int(round(quality * 100))


class ImageEncoder:
    """
    Encodes surfaces to one lossy format chosen once at construction.

    The target format is probed when the encoder is built; if the runtime
    cannot write it the fallback format is used instead.
    """

    def __init__(
        self,
        target_format: str = "WEBP",
        fallback_format: Optional[str] = "JPEG",
        logger: Optional[LoggerProtocol] = None,
    ):
        self._logger = logger or get_logger("gallery-ingest.encoder")
        target_format = target_format.upper()
        if supports_target_format(target_format):
            self.format = target_format
        elif fallback_format and supports_target_format(fallback_format):
            self.format = fallback_format.upper()
            self._logger.warning(
                f"{target_format} encoding unavailable, falling back to {self.format}"
            )
        else:
            raise EncodeError(
                f"no supported output format among {target_format!r}, {fallback_format!r}"
            )

    @property
    def extension(self) -> str:
        return FORMAT_INFO[self.format][0]

    @property
    def content_type(self) -> str:
        return FORMAT_INFO[self.format][1]

    def encode(self, surface: Image.Image, quality: float = DEFAULT_QUALITY) -> bytes:
        """
        Compress ``surface`` in the chosen format.

        Raises:
            ConfigurationError: quality outside ``[0, 1]``.
            EncodeError: the codec failed or produced no data.
        """
        pillow_quality = quality_to_pillow(quality)
        image = surface
        if self.format == "JPEG" and image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        buffer = io.BytesIO()
        try:
            image.save(buffer, format=self.format, quality=pillow_quality)
        except (OSError, KeyError, ValueError) as exc:
            raise EncodeError(f"{self.format} encoding failed: {exc}") from exc

        data = buffer.getvalue()
        if not data:
            raise EncodeError(f"{self.format} encoder returned no data")
        return data
