"""Shared fixtures: isolated settings, stubbed HTTP and font faces that need no files."""

import asyncio
import base64
import struct
import zlib
from io import BytesIO

import httpx
import pytest
from PIL import Image, ImageFont

from instabuilder.config import Settings
from instabuilder.services.backgrounds import BackgroundImageLoader
from instabuilder.services.exporter import CarouselExporter
from instabuilder.services.font_service import FontCache, FontDescriptor, FontResolver, FontSet
from instabuilder.services.grain import GrainTexture
from instabuilder.services.image_renderer import SlideRasterizer
from instabuilder.services.png_encoder import PNG_SIGNATURE, chunk


class BuiltinFaceDescriptor(FontDescriptor):
    """Loads Pillow's bundled scalable face instead of parsing font bytes."""

    def load(self, size):
        return ImageFont.load_default(size=size)


def builtin_font_set(*pairs) -> FontSet:
    pairs = pairs or (("Inter", 400),)
    return FontSet([BuiltinFaceDescriptor(family, weight, b"") for family, weight in pairs])


class StubFontResolver(FontResolver):
    """Resolver that always answers with the builtin face, no network."""

    def __init__(self, client, settings, pairs=(("Inter", 400), ("Playfair Display", 800))):
        super().__init__(client, FontCache(), settings)
        self.pairs = pairs
        self.requested = []

    async def resolve_font_set(self, elements):
        self.requested.append([(el.font_family, el.weight) for el in elements])
        return builtin_font_set(*self.pairs)


def png_bytes(color=(0, 0, 255), size=(10, 10)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, "PNG")
    return buffer.getvalue()


def oversized_png_url(width=20000, height=20000) -> str:
    """A PNG data URL whose header declares more pixels than Pillow will decode."""
    header = struct.pack(">IIBBBBB", width, height, 8, 0, 0, 0, 0)
    data = PNG_SIGNATURE + chunk(b"IHDR", header) + chunk(b"IDAT", zlib.compress(b"\x00")) + chunk(b"IEND", b"")
    return "data:image/png;base64," + base64.b64encode(data).decode()


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        font_dir=str(tmp_path / "fonts"),
        fallback_font_path=str(tmp_path / "fonts" / "Inter-Regular.ttf"),
    )


@pytest.fixture
def failing_client():
    """HTTP client where every request 404s."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    yield client
    run(client.aclose())


@pytest.fixture
def fonts():
    return builtin_font_set(("Inter", 400), ("Playfair Display", 800))


@pytest.fixture
def rasterizer(settings, failing_client):
    return SlideRasterizer(
        font_resolver=StubFontResolver(failing_client, settings),
        grain=GrainTexture(settings),
        image_loader=BackgroundImageLoader(failing_client, settings),
        settings=settings,
    )


@pytest.fixture
def exporter(rasterizer, settings):
    return CarouselExporter(rasterizer, settings)
