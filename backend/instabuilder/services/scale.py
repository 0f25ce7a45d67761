"""Mapping from editor coordinates to the output canvas."""

import logging

from instabuilder.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Output height as a multiple of the fixed width
ASPECT_HEIGHT_FACTORS = {
    "1:1": 1.0,
    "4:5": 5 / 4,
    "9:16": 16 / 9,
}
DEFAULT_ASPECT_RATIO = "4:5"

ANCHOR_SHIFTS = {
    "top": 0.0,
    "center": 0.5,
    "bottom": 1.0,
}


def slide_height(aspect_ratio: str, width: int) -> int:
    """Output height for an aspect ratio; unknown ratios render as 4:5."""
    factor = ASPECT_HEIGHT_FACTORS.get(aspect_ratio)
    if factor is None:
        logger.info("Unknown aspect ratio %r, rendering as %s", aspect_ratio, DEFAULT_ASPECT_RATIO)
        factor = ASPECT_HEIGHT_FACTORS[DEFAULT_ASPECT_RATIO]
    return round(width * factor)


def scale_factor(output_width: float, reference_width: float) -> float:
    if reference_width <= 0:
        raise ValueError("Reference width must be positive")
    return output_width / reference_width


class ScaleMapper:
    """Converts editor pixel values into output-canvas pixel values.

    Pixel attributes (font size, padding) are authored against the editor's
    preview width and multiplied by output/reference width. Percentages
    (vertical position) need no scaling.
    """

    def __init__(self, settings: Settings | None = None, output_width: int | None = None):
        self.settings = settings or get_settings()
        self.output_width = output_width or self.settings.slide_width
        self.reference_width = self.settings.design_width
        self.factor = scale_factor(self.output_width, self.reference_width)

    def height_for(self, aspect_ratio: str) -> int:
        return slide_height(aspect_ratio, self.output_width)

    def size_for(self, aspect_ratio: str) -> tuple[int, int]:
        return self.output_width, self.height_for(aspect_ratio)

    def scaled_font_size(self, font_size_px: float) -> float:
        return font_size_px * self.factor

    def scaled_padding(self) -> float:
        return self.settings.design_padding * self.factor

    def line_height(self, font_size_px: float) -> float:
        return self.scaled_font_size(font_size_px) * self.settings.line_height

    def content_width(self) -> float:
        return self.output_width - 2 * self.scaled_padding()

    @staticmethod
    def anchor_y(y_percent: float, canvas_height: int) -> float:
        return canvas_height * y_percent / 100

    @staticmethod
    def block_top(anchor_y: float, block_height: float, vertical_anchor: str) -> float:
        """Top edge of a text block pinned at anchor_y by the given edge."""
        return anchor_y - block_height * ANCHOR_SHIFTS.get(vertical_anchor, ANCHOR_SHIFTS["center"])
