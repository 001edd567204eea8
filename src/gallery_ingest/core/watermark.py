"""Procedural text watermark rendering on Pillow surfaces."""

import math
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from PIL import Image, ImageDraw, ImageFilter, ImageFont

from .exceptions import RenderError, stage_errors
from .logging_config import get_logger
from .models import WatermarkConfig, WatermarkPosition
from .protocols import LoggerProtocol

MIN_FONT_SIZE = 24
MAX_FONT_SIZE = 72
CORNER_PADDING = 20
TILE_ANGLE = -30
TILE_SPACING_FACTOR = 1.8
TILE_LINE_FACTOR = 3


@dataclass(frozen=True)
class ShadowStyle:
    offset: Tuple[int, int]
    blur: float
    alpha: float


CENTER_SHADOW = ShadowStyle(offset=(2, 2), blur=10, alpha=0.5)
CORNER_SHADOW = ShadowStyle(offset=(1, 1), blur=4, alpha=0.7)


def compute_font_size(width: int, height: int) -> int:
    """Base font size: a twentieth of the short side, clamped to 24..72."""
    return int(max(MIN_FONT_SIZE, min(min(width, height) / 20, MAX_FONT_SIZE)))


def tile_anchor_points(
    width: int, height: int, spacing: float, vertical_spacing: float
) -> Iterator[Tuple[float, float]]:
    """
    Yield tile centres for the diagonal layout.

    Both axes run from ``-diagonal`` to ``2 * diagonal`` so the rotated grid
    leaves no corner of the surface uncovered.
    """
    if spacing <= 0 or vertical_spacing <= 0:
        raise ValueError("tile spacing must be positive")
    diagonal = math.hypot(width, height)
    y = -diagonal
    while y < diagonal * 2:
        x = -diagonal
        while x < diagonal * 2:
            yield x, y
            x += spacing
        y += vertical_spacing


def _composite(canvas: Image.Image, patch: Image.Image, x: float, y: float) -> bool:
    """Alpha-composite ``patch`` with its top-left at (x, y), clipping to the canvas."""
    x, y = int(round(x)), int(round(y))
    if x >= canvas.width or y >= canvas.height:
        return False
    if x + patch.width <= 0 or y + patch.height <= 0:
        return False
    canvas.alpha_composite(
        patch, dest=(max(x, 0), max(y, 0)), source=(max(-x, 0), max(-y, 0))
    )
    return True


class WatermarkRenderer:
    """Draws a text watermark onto a copy of a surface."""

    def __init__(self, logger: Optional[LoggerProtocol] = None):
        self._logger = logger or get_logger("gallery-ingest.watermark")
        self._fonts: Dict[Tuple[str, int], ImageFont.ImageFont] = {}
        self._missing_families = set()

    def load_font(self, family: str, size: int):
        key = (family, size)
        if key not in self._fonts:
            try:
                self._fonts[key] = ImageFont.truetype(family, size)
            except OSError:
                if family not in self._missing_families:
                    self._missing_families.add(family)
                    self._logger.warning(
                        f"Font {family!r} unavailable, using Pillow default font"
                    )
                self._fonts[key] = ImageFont.load_default(size=size)
        return self._fonts[key]

    def render(self, surface: Image.Image, config: WatermarkConfig) -> Image.Image:
        """
        Return a watermarked copy of ``surface``; ``surface`` itself is untouched.

        Blank text yields a plain copy.

        Raises:
            RenderError: composition failed.
        """
        if config.is_blank:
            return surface.copy()

        with stage_errors(RenderError):
            canvas = surface.convert("RGBA")
            base_size = config.font_size or compute_font_size(*canvas.size)
            opacity = config.resolved_opacity()

            if config.position is WatermarkPosition.CENTER:
                self._draw_center(canvas, config, base_size, opacity)
            elif config.position in (
                WatermarkPosition.BOTTOM_LEFT,
                WatermarkPosition.BOTTOM_RIGHT,
            ):
                self._draw_corner(canvas, config, base_size, opacity)
            else:
                self._draw_tiles(canvas, config, base_size, opacity)

            if surface.mode == "RGBA":
                return canvas
            return canvas.convert(surface.mode)

    def _text_patch(
        self,
        text: str,
        font,
        rgb: Tuple[int, int, int],
        opacity: float,
        shadow: Optional[ShadowStyle] = None,
    ) -> Tuple[Image.Image, int]:
        """
        Render ``text`` onto a tight transparent patch.

        Returns the patch and the inset of the glyph box inside it, which is
        non-zero only when room is left for the shadow.
        """
        left, top, right, bottom = font.getbbox(text)
        inset = 0
        if shadow is not None:
            inset = int(math.ceil(shadow.blur * 1.5)) + max(map(abs, shadow.offset))
        size = (right - left + 2 * inset + 1, bottom - top + 2 * inset + 1)
        origin = (inset - left, inset - top)

        patch = Image.new("RGBA", size, (0, 0, 0, 0))
        if shadow is not None:
            shadow_alpha = int(255 * shadow.alpha * opacity)
            ImageDraw.Draw(patch).text(
                (origin[0] + shadow.offset[0], origin[1] + shadow.offset[1]),
                text,
                font=font,
                fill=(0, 0, 0, shadow_alpha),
            )
            patch = patch.filter(ImageFilter.GaussianBlur(radius=shadow.blur / 2))

        text_layer = Image.new("RGBA", size, (0, 0, 0, 0))
        ImageDraw.Draw(text_layer).text(
            origin, text, font=font, fill=(*rgb, int(255 * opacity))
        )
        return Image.alpha_composite(patch, text_layer), inset

    def _draw_center(self, canvas, config, base_size, opacity):
        font = self.load_font(config.font_family, base_size * 2)
        patch, inset = self._text_patch(
            config.text, font, config.rgb, opacity, CENTER_SHADOW
        )
        glyph_w = patch.width - 2 * inset
        glyph_h = patch.height - 2 * inset
        x = canvas.width / 2 - glyph_w / 2 - inset
        y = canvas.height / 2 - glyph_h / 2 - inset
        _composite(canvas, patch, x, y)

    def _draw_corner(self, canvas, config, base_size, opacity):
        font = self.load_font(config.font_family, base_size)
        patch, inset = self._text_patch(
            config.text, font, config.rgb, opacity, CORNER_SHADOW
        )
        glyph_w = patch.width - 2 * inset
        glyph_h = patch.height - 2 * inset
        if config.position is WatermarkPosition.BOTTOM_RIGHT:
            x = canvas.width - CORNER_PADDING - glyph_w - inset
        else:
            x = CORNER_PADDING - inset
        y = canvas.height - CORNER_PADDING - glyph_h - inset
        _composite(canvas, patch, x, y)

    def _draw_tiles(self, canvas, config, base_size, opacity):
        font = self.load_font(config.font_family, base_size)
        patch, _ = self._text_patch(config.text, font, config.rgb, opacity)
        # Pillow rotates counter-clockwise; the canvas y axis points down
        stamp = patch.rotate(-TILE_ANGLE, expand=True, resample=Image.Resampling.BICUBIC)

        spacing = max(patch.width * TILE_SPACING_FACTOR, 1)
        vertical_spacing = base_size * TILE_LINE_FACTOR
        placed = 0
        for cx, cy in tile_anchor_points(
            canvas.width, canvas.height, spacing, vertical_spacing
        ):
            if _composite(canvas, stamp, cx - stamp.width / 2, cy - stamp.height / 2):
                placed += 1
        self._logger.debug(f"Placed {placed} watermark tiles")
