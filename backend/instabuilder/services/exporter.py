"""Batch export: render a carousel's slides in order and pack them into one ZIP."""

import logging
import re
import zipfile
from dataclasses import dataclass
from io import BytesIO

from instabuilder.config import Settings, get_settings
from instabuilder.models import clamp_grain_intensity, parse_slides
from instabuilder.services.image_renderer import RenderFailure, SlideRasterizer

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "carousel"


class SlideCountError(ValueError):
    pass


def safe_naming_prefix(title: str | None, default: str = DEFAULT_PREFIX) -> str:
    """File-name prefix from a user title: [a-z0-9_-] only, lower case."""
    if not isinstance(title, str) or not title.strip():
        return default
    prefix = re.sub(r"[^a-z0-9_\-]", "-", title.strip(), flags=re.IGNORECASE).lower().strip("-")
    return prefix or default


def slide_filename(prefix: str, index: int, ext: str = "png") -> str:
    """Archive entry name for the 1-based slide index."""
    return f"{prefix}-slide-{index}.{ext}"


@dataclass(frozen=True)
class CarouselArchive:
    data: bytes
    filename: str
    entries: tuple[str, ...]

    @property
    def slide_count(self) -> int:
        return len(self.entries)


class CarouselExporter:
    """Renders slides strictly in order; any failed slide aborts the export."""

    def __init__(self, rasterizer: SlideRasterizer, settings: Settings | None = None):
        self.rasterizer = rasterizer
        self.settings = settings or get_settings()

    def validate(self, slides: list) -> None:
        limit = self.settings.max_export_slides
        if not slides:
            raise SlideCountError("No slides to export")
        if len(slides) > limit:
            raise SlideCountError(f"Too many slides (max {limit})")

    async def export_carousel(self, slides: list, grain_intensity: int = 0, title: str | None = None) -> CarouselArchive:
        """ZIP archive of all slides as {prefix}-slide-N.png."""
        self.validate(slides)
        slides = parse_slides(slides)
        grain_intensity = clamp_grain_intensity(grain_intensity)
        prefix = safe_naming_prefix(title)

        buffer = BytesIO()
        entries = []
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for index, slide in enumerate(slides, 1):
                try:
                    png = await self.rasterizer.render_slide(slide, grain_intensity)
                except RenderFailure as e:
                    logger.error("Export aborted at slide %d of %d: %s", index, len(slides), e)
                    raise RenderFailure(f"Slide {index}: {e}", slide_index=index) from e
                name = slide_filename(prefix, index)
                archive.writestr(name, png)
                entries.append(name)

        logger.info("Exported %d slides as %s.zip", len(entries), prefix)
        return CarouselArchive(data=buffer.getvalue(), filename=f"{prefix}.zip", entries=tuple(entries))
