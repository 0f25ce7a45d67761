"""
Slide Rendering Engine.

Composes one slide into a fixed-size PNG:
- background (solid / linear gradient / cover image, default dark fill)
- optional film grain, overlay-blended
- text elements in list order, positioned by y% and vertical anchor

Everything pixel-valued is authored at the editor's preview width and scaled
to the output width; see ScaleMapper.
"""

import logging
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont

from instabuilder.config import Settings, get_settings
from instabuilder.models import (
    GradientBackground,
    ImageBackground,
    Slide,
    SlideBackground,
    SolidBackground,
    TextElement,
    clamp_grain_intensity,
)
from instabuilder.services.backgrounds import (
    BackgroundImageLoader,
    parse_css_color,
    parse_linear_gradient,
    render_linear_gradient,
    resize_cover,
)
from instabuilder.services.font_service import FontResolver, FontSet
from instabuilder.services.grain import GrainTexture
from instabuilder.services.scale import ScaleMapper

logger = logging.getLogger(__name__)

FALLBACK_BACKGROUND = (10, 10, 15, 255)
WHITE = (255, 255, 255, 255)


class RenderFailure(RuntimeError):
    """A slide could not be rendered at all (no fonts, or composition failed)."""

    def __init__(self, message: str, slide_index: int | None = None):
        super().__init__(message)
        self.slide_index = slide_index


@dataclass(frozen=True)
class LineBox:
    text: str
    left: float
    top: float
    width: float
    height: float
    baseline: float

    @property
    def center_x(self) -> float:
        return self.left + self.width / 2

    @property
    def center_y(self) -> float:
        return self.top + self.height / 2


@dataclass(frozen=True)
class TextBlockLayout:
    element_id: str
    anchor_y: float
    top: float
    height: float
    font_size: float
    line_height: float
    lines: tuple[LineBox, ...]

    @property
    def center_y(self) -> float:
        return self.top + self.height / 2

    @property
    def bottom(self) -> float:
        return self.top + self.height


def _fit_chars(word: str, font: ImageFont.FreeTypeFont, max_width: float) -> int:
    cut = 1
    while cut < len(word) and font.getlength(word[:cut + 1]) <= max_width:
        cut += 1
    return cut


def wrap_line(text: str, font: ImageFont.FreeTypeFont, max_width: float) -> list[str]:
    """Wrap one line to max_width; words wider than a line are broken by character."""
    words = text.split()
    if not words:
        return [text or " "]

    lines = []
    current = ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if font.getlength(candidate) <= max_width:
            current = candidate
            continue
        if current:
            lines.append(current)
        while len(word) > 1 and font.getlength(word) > max_width:
            cut = _fit_chars(word, font, max_width)
            lines.append(word[:cut])
            word = word[cut:]
        current = word

    lines.append(current)
    return lines


class SlideRasterizer:
    """Renders slides to PNG bytes.

    Font and grain caches live on the injected FontResolver and GrainTexture,
    so one rasterizer per service shares them across requests.
    """

    def __init__(
        self,
        font_resolver: FontResolver,
        grain: GrainTexture | None = None,
        image_loader: BackgroundImageLoader | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.font_resolver = font_resolver
        self.grain = grain or GrainTexture(self.settings)
        self.image_loader = image_loader
        self.mapper = ScaleMapper(self.settings)
        self.default_background = parse_css_color(self.settings.default_background) or FALLBACK_BACKGROUND
        self.default_text_color = parse_css_color(self.settings.default_text_color) or WHITE

    async def render_slide(self, slide: Slide | dict, grain_intensity: int = 0) -> bytes:
        """Resolve fonts and background image for a slide, then rasterize it."""
        slide = Slide.from_payload(slide)
        fonts = await self.font_resolver.resolve_font_set(slide.elements)

        background_image = None
        if isinstance(slide.background, ImageBackground) and self.image_loader is not None:
            background_image = await self.image_loader.load(slide.background.image_url)

        return self.rasterize(slide, grain_intensity, fonts, background_image)

    def rasterize(
        self,
        slide: Slide,
        grain_intensity: int,
        fonts: FontSet,
        background_image: Image.Image | None = None,
    ) -> bytes:
        """PNG bytes for a slide with already-resolved fonts."""
        if len(fonts) == 0:
            raise RenderFailure("No fonts available for rendering")
        try:
            img = self.compose(slide, grain_intensity, fonts, background_image)
            buffer = BytesIO()
            img.save(buffer, "PNG")
        except RenderFailure:
            raise
        except Exception as e:
            logger.exception("Composition failed for slide %s", slide.id)
            raise RenderFailure(f"Composition failed: {e}") from e
        return buffer.getvalue()

    def compose(
        self,
        slide: Slide,
        grain_intensity: int,
        fonts: FontSet,
        background_image: Image.Image | None = None,
    ) -> Image.Image:
        """Background, then grain, then text elements in paint order."""
        size = self.mapper.size_for(slide.aspect_ratio)
        canvas = self.paint_background(slide.background, size, background_image)

        intensity = clamp_grain_intensity(grain_intensity)
        if intensity > 0:
            canvas = self.grain.composite(canvas, intensity)

        canvas = canvas.convert("RGBA")
        for element in slide.elements:
            layout = self.layout_element(element, fonts, size)
            canvas = self._paint_text(canvas, element, layout, fonts)

        return canvas.convert("RGB")

    def paint_background(
        self,
        background: SlideBackground,
        size: tuple[int, int],
        image: Image.Image | None = None,
    ) -> Image.Image:
        """RGB canvas with the background; anything unusable paints the default color."""
        canvas = Image.new("RGBA", size, self.default_background)
        layer = None

        if isinstance(background, SolidBackground):
            color = parse_css_color(background.color)
            if color is None:
                logger.warning("Unparseable background color %r", background.color)
            else:
                layer = Image.new("RGBA", size, color)
        elif isinstance(background, GradientBackground):
            gradient = parse_linear_gradient(background.gradient)
            if gradient is None:
                logger.warning("Unsupported gradient %r", background.gradient)
            else:
                layer = render_linear_gradient(gradient, size)
        elif isinstance(background, ImageBackground):
            if image is None:
                logger.warning("Background image unavailable: %s", background.image_url[:80])
            else:
                layer = resize_cover(image.convert("RGBA"), size)

        if layer is not None:
            canvas = Image.alpha_composite(canvas, layer)
        return canvas.convert("RGB")

    def layout_element(self, element: TextElement, fonts: FontSet, size: tuple[int, int]) -> TextBlockLayout:
        """Line boxes for one element on a canvas of the given size."""
        width, height = size
        font_size = self.mapper.scaled_font_size(element.font_size)
        line_height = self.mapper.line_height(element.font_size)
        face = self._face(element, fonts, font_size)
        chosen = fonts.match(element.font_family, element.weight)
        if (chosen.family, chosen.weight) != (element.font_family, element.weight):
            logger.info(
                "Substituting %s %d for %s %d",
                chosen.family, chosen.weight, element.font_family, element.weight,
            )

        padding = self.mapper.scaled_padding()
        max_width = self.mapper.content_width()
        texts = [wrapped for line in element.lines for wrapped in wrap_line(line, face, max_width)]

        block_height = len(texts) * line_height
        anchor_y = ScaleMapper.anchor_y(element.y_percent, height)
        top = ScaleMapper.block_top(anchor_y, block_height, element.vertical_anchor)

        # Glyphs sit on the baseline with half the leading above them
        ascent, descent = face.getmetrics()
        half_leading = (line_height - (ascent + descent)) / 2

        boxes = []
        for i, text in enumerate(texts):
            line_width = face.getlength(text)
            if element.align == "left":
                left = padding
            elif element.align == "right":
                left = width - padding - line_width
            else:
                left = (width - line_width) / 2
            line_top = top + i * line_height
            boxes.append(LineBox(text, left, line_top, line_width, line_height, line_top + half_leading + ascent))

        return TextBlockLayout(
            element_id=element.id,
            anchor_y=anchor_y,
            top=top,
            height=block_height,
            font_size=font_size,
            line_height=line_height,
            lines=tuple(boxes),
        )

    def _face(self, element: TextElement, fonts: FontSet, font_size: float) -> ImageFont.FreeTypeFont:
        face = fonts.face(element.font_family, element.weight, font_size)
        if face is None:
            raise RenderFailure(f"No usable font for {element.font_family} {element.weight}")
        return face

    def _paint_text(
        self,
        canvas: Image.Image,
        element: TextElement,
        layout: TextBlockLayout,
        fonts: FontSet,
    ) -> Image.Image:
        color = parse_css_color(element.color)
        if color is None:
            logger.warning("Unparseable text color %r", element.color)
            color = self.default_text_color

        face = self._face(element, fonts, layout.font_size)
        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        for line in layout.lines:
            draw.text((line.left, line.baseline), line.text, font=face, fill=color, anchor="ls")
        return Image.alpha_composite(canvas, layer)
