"""
Film-grain overlay.

A square tile of random gray noise is generated once per GrainTexture and
encoded as PNG; renders tile it across the canvas with an overlay blend.
Pixel content is random, the tiling and opacity math is not.
"""

import logging
import math
import secrets
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageChops

from instabuilder.config import Settings, get_settings
from instabuilder.services.png_encoder import encode_grayscale_png

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodedRaster:
    data: bytes
    width: int
    height: int
    media_type: str = "image/png"


def grain_opacity(intensity: float, max_opacity: float = 0.45) -> float:
    """Overlay opacity for a 0-100 intensity (clamped)."""
    intensity = max(0.0, min(100.0, float(intensity)))
    return intensity / 100 * max_opacity


def tile_origins(width: int, height: int, tile_size: int) -> list[tuple[int, int]]:
    """Top-left corners of the tiles covering a width x height canvas, row by row."""
    cols = math.ceil(width / tile_size)
    rows = math.ceil(height / tile_size)
    return [(c * tile_size, r * tile_size) for r in range(rows) for c in range(cols)]


class GrainTexture:
    """Memoized noise tile plus the compositing step.

    One instance per service; tests build their own for a fresh cache.
    """

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.tile_size = settings.grain_tile_size
        self.max_opacity = settings.grain_max_opacity
        self._overlay: EncodedRaster | None = None
        self._tile: Image.Image | None = None

    def get_overlay(self) -> EncodedRaster:
        """The encoded noise tile, generated on first use."""
        if self._overlay is None:
            size = self.tile_size
            noise = secrets.token_bytes(size * size)
            self._overlay = EncodedRaster(encode_grayscale_png(noise, size, size), size, size)
            logger.debug("Generated %dx%d grain tile (%d bytes)", size, size, len(self._overlay.data))
        return self._overlay

    def tile_image(self) -> Image.Image:
        if self._tile is None:
            overlay = self.get_overlay()
            with Image.open(BytesIO(overlay.data)) as img:
                self._tile = img.convert("RGB")
        return self._tile

    def opacity(self, intensity: float) -> float:
        return grain_opacity(intensity, self.max_opacity)

    def build_layer(self, width: int, height: int) -> Image.Image:
        """The tile repeated over the whole canvas; edge tiles are clipped."""
        tile = self.tile_image()
        layer = Image.new("RGB", (width, height))
        for origin in tile_origins(width, height, self.tile_size):
            layer.paste(tile, origin)
        return layer

    def composite(self, canvas: Image.Image, intensity: float) -> Image.Image:
        """Blend the grain over an RGB canvas. Intensity 0 returns the canvas untouched."""
        opacity = self.opacity(intensity)
        if opacity <= 0:
            return canvas
        layer = self.build_layer(*canvas.size)
        blended = ImageChops.overlay(canvas, layer)
        return Image.blend(canvas, blended, opacity)
