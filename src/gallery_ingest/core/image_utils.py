"""Naming and metadata helpers for stored photo variants."""

import uuid
from typing import Any, Dict, NamedTuple

from PIL import Image

ORIGINAL_SUFFIX = "original"
WATERMARKED_SUFFIX = "watermarked"


class VariantKeys(NamedTuple):
    """Storage keys for the two variants of one photo; they share a prefix."""

    photo_id: str
    original: str
    watermarked: str


def new_photo_id() -> str:
    return uuid.uuid4().hex


def build_variant_keys(
    album_id: str, extension: str, key_prefix: str = "", photo_id: str = ""
) -> VariantKeys:
    """
    Calculate storage keys for the original and watermarked variants.

    Args:
        album_id: Album the photo belongs to
        extension: File extension without the dot
        key_prefix: Optional prefix prepended to every key
        photo_id: Shared identifier; a fresh UUID when empty

    Returns:
        ``VariantKeys`` such as ``albums/<album>/<id>_original.webp``
    """
    photo_id = photo_id or new_photo_id()
    parts = [p.strip("/") for p in (key_prefix, album_id) if p and p.strip("/")]
    base = "/".join(parts + [photo_id])
    return VariantKeys(
        photo_id=photo_id,
        original=f"{base}_{ORIGINAL_SUFFIX}.{extension}",
        watermarked=f"{base}_{WATERMARKED_SUFFIX}.{extension}",
    )


def describe_surface(img: Image.Image) -> Dict[str, Any]:
    """Basic surface information for logging."""
    return {
        "width": img.width,
        "height": img.height,
        "format": img.format or "unknown",
        "mode": img.mode,
    }
