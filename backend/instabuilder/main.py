"""FastAPI app with the slide rendering API"""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from instabuilder.config import get_settings
from instabuilder.routes import RenderServices, router
from instabuilder.services.backgrounds import BackgroundImageLoader
from instabuilder.services.exporter import CarouselExporter
from instabuilder.services.font_service import FontCache, FontResolver
from instabuilder.services.grain import GrainTexture
from instabuilder.services.image_renderer import SlideRasterizer

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_services(client: httpx.AsyncClient) -> RenderServices:
    """One font cache and one grain tile for the whole process."""
    rasterizer = SlideRasterizer(
        font_resolver=FontResolver(client, FontCache(), settings),
        grain=GrainTexture(settings),
        image_loader=BackgroundImageLoader(client, settings),
        settings=settings,
    )
    return RenderServices(rasterizer=rasterizer, exporter=CarouselExporter(rasterizer, settings))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Shared HTTP client and render services for the app's lifetime."""
    logger.info("Starting slide renderer (width=%dpx)", settings.slide_width)
    async with httpx.AsyncClient(timeout=settings.font_fetch_timeout) as client:
        app.state.services = build_services(client)
        yield
    logger.info("Shutting down...")


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(router, prefix="/api")
