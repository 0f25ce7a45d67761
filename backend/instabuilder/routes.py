"""
API routes for the carousel slide renderer.
"""

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from instabuilder.design_templates import list_fonts
from instabuilder.models import Slide, clamp_grain_intensity, make_default_slide
from instabuilder.services.exporter import CarouselArchive, CarouselExporter, SlideCountError, slide_filename
from instabuilder.services.image_renderer import RenderFailure, SlideRasterizer
from instabuilder.templates import (
    TemplateNotFound,
    apply_text_overrides,
    describe_template,
    instantiate_template,
    list_templates,
    parse_overrides,
)

router = APIRouter()


@dataclass
class RenderServices:
    rasterizer: SlideRasterizer
    exporter: CarouselExporter


def get_services(request: Request) -> RenderServices:
    """Services built in the app lifespan."""
    return request.app.state.services


# Request Models

class RenderRequest(BaseModel):
    slide: dict[str, Any]
    grainIntensity: Any = 0


class ExportRequest(BaseModel):
    slides: list[Any] = Field(default_factory=list)
    title: Optional[str] = None
    grainIntensity: Any = 0


class GenerateFromTemplateRequest(BaseModel):
    templateId: str
    title: Optional[str] = None
    grainIntensity: Any = 0
    textOverrides: list[Any] = Field(default_factory=list)


def _zip_response(archive: CarouselArchive) -> Response:
    return Response(
        content=archive.data,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{archive.filename}"',
            "X-Slide-Count": str(archive.slide_count),
            "Cache-Control": "no-store",
        },
    )


async def _export(services: RenderServices, slides: list, grain: Any, title: Optional[str]) -> Response:
    try:
        archive = await services.exporter.export_carousel(slides, clamp_grain_intensity(grain), title)
    except SlideCountError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RenderFailure:
        raise HTTPException(status_code=500, detail="Render failed")
    return _zip_response(archive)


# Routes

@router.get("/fonts")
async def get_fonts():
    """Fonts offered in the editor."""
    return list_fonts()


@router.get("/templates")
async def get_templates():
    """Built-in templates and the text override format."""
    return {
        "templates": list_templates(),
        "textOverridesFormat": [
            {"slideIndex": 0, "elementType": "header", "text": "Your new text"},
            {"slideIndex": 0, "elementType": "subtitle", "text": "Your subtitle"},
        ],
    }


@router.get("/templates/{template_id}")
async def get_template_detail(template_id: str):
    """Element structure of one template."""
    try:
        return describe_template(template_id)
    except TemplateNotFound:
        raise HTTPException(status_code=404, detail=f"Template '{template_id}' not found")


@router.get("/canvas/default-slide")
async def get_default_slide():
    """Starter slide for a new carousel, in editor JSON."""
    return make_default_slide().to_payload()


@router.post("/canvas/render")
async def render_slide(request: RenderRequest, services: RenderServices = Depends(get_services)):
    """Render a single slide as PNG."""
    try:
        png = await services.rasterizer.render_slide(
            Slide.from_payload(request.slide), clamp_grain_intensity(request.grainIntensity)
        )
    except RenderFailure:
        raise HTTPException(status_code=500, detail="Render failed")
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="{slide_filename("slide", 1)}"'},
    )


@router.post("/canvas/export")
async def export_canvas(request: ExportRequest, services: RenderServices = Depends(get_services)):
    """Render all slides and return them as a ZIP file."""
    return await _export(services, request.slides, request.grainIntensity, request.title)


@router.post("/carousels/generate")
async def generate_from_template(
    request: GenerateFromTemplateRequest,
    services: RenderServices = Depends(get_services),
):
    """Fill a built-in template with text overrides and return the rendered ZIP."""
    try:
        slides = instantiate_template(request.templateId)
    except TemplateNotFound:
        raise HTTPException(
            status_code=404,
            detail=f"Template '{request.templateId}' not found. Use GET /api/templates to list templates.",
        )

    overrides = parse_overrides(request.textOverrides)
    if overrides:
        slides = apply_text_overrides(slides, overrides)

    return await _export(services, slides, request.grainIntensity, request.title)
