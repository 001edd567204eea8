"""Decoding of user-supplied image bytes into Pillow surfaces."""

from io import BytesIO
from contextlib import contextmanager
from typing import Iterator, Optional

from PIL import Image, UnidentifiedImageError

from .exceptions import DecodeError
from .models import UploadFile

_DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)

# Declared types that can never hold a raster image. Anything else, including
# ``application/octet-stream`` from clients that do not sniff, is left to Pillow.
_NON_IMAGE_MAJOR_TYPES = ("text", "audio", "video", "font", "multipart", "message")


def _is_non_image_type(media_type: Optional[str]) -> bool:
    if not media_type:
        return False
    return media_type.split("/", 1)[0].strip().lower() in _NON_IMAGE_MAJOR_TYPES


@contextmanager
def open_image_source(upload: UploadFile) -> Iterator[Image.Image]:
    """
    Decode ``upload`` and yield the fully loaded surface.

    The byte stream and the decoded surface are both released when the block
    exits, whether decoding, the caller, or nothing failed.

    Raises:
        DecodeError: unreadable or empty input, a media type that cannot be an
            image, or bytes Pillow does not recognise.
    """
    if _is_non_image_type(upload.media_type):
        raise DecodeError(
            f"unsupported media type {upload.media_type!r}", filename=upload.filename
        )
    try:
        content = upload.read()
    except OSError as exc:
        raise DecodeError(f"cannot read file: {exc}", filename=upload.filename) from exc
    if not content:
        raise DecodeError("file is empty", filename=upload.filename)

    stream = BytesIO(content)
    try:
        try:
            image = Image.open(stream)
            image.load()
        except _DECODE_ERRORS as exc:
            raise DecodeError(
                f"cannot decode image: {exc}", filename=upload.filename
            ) from exc
        try:
            yield image
        finally:
            image.close()
    finally:
        stream.close()


def normalize_mode(image: Image.Image) -> Image.Image:
    """Return an RGB or RGBA copy suitable for drawing and lossy encoding."""
    has_alpha = image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info
    return image.convert("RGBA" if has_alpha else "RGB")


def decode_image(upload: UploadFile) -> Image.Image:
    """Decode ``upload`` into a surface detached from the source bytes."""
    with open_image_source(upload) as source:
        return normalize_mode(source)
