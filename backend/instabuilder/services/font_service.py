"""
Font resolution for the slide renderer.

Lookup order for one (family, weight):
1. in-memory cache
2. self-hosted file under settings.font_dir
3. Google Fonts CSS API -> font file URL -> download

Failures at any step give None, never an exception. resolve_font_set adds
the bundled fallback font so a slide always has something to draw with.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Iterable

import httpx
from PIL import ImageFont

from instabuilder.config import Settings, get_settings
from instabuilder.design_templates import WEIGHT_FILE_SUFFIXES

logger = logging.getLogger(__name__)

FontKey = tuple[str, int]

_PREFERRED_SRC = re.compile(r"src:\s*url\(([^)]+)\)\s*format\(['\"]?(?:truetype|opentype)['\"]?\)")
_ANY_SRC = re.compile(r"src:\s*url\(([^)]+)\)")


def extract_font_url(css: str) -> str | None:
    """Font file URL from a Google Fonts style sheet, TTF/OTF preferred."""
    match = _PREFERRED_SRC.search(css) or _ANY_SRC.search(css)
    if not match:
        return None
    return match.group(1).strip().strip("'\"")


@dataclass(frozen=True)
class FontDescriptor:
    family: str
    weight: int
    data: bytes
    style: str = "normal"

    def load(self, size: float) -> ImageFont.FreeTypeFont:
        return ImageFont.truetype(BytesIO(self.data), size)


class FontCache:
    """(family, weight) -> font bytes for the lifetime of the owner.

    No eviction: the catalog bounds the key space. Concurrent misses for the
    same key just fetch twice and store equal values.
    """

    def __init__(self):
        self._entries: dict[FontKey, bytes] = {}

    def get(self, family: str, weight: int) -> bytes | None:
        return self._entries.get((family, weight))

    def put(self, family: str, weight: int, data: bytes) -> None:
        self._entries[(family, weight)] = data

    def __contains__(self, key: FontKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class FontSet:
    """Fonts resolved for one slide, with substitution for missing faces."""

    def __init__(self, fonts: Iterable[FontDescriptor], fallback_family: str = "Inter", fallback_weight: int = 400):
        self.fonts = list(fonts)
        self.fallback_family = fallback_family
        self.fallback_weight = fallback_weight
        self._faces: dict[tuple[str, int, float], ImageFont.FreeTypeFont] = {}

    def __len__(self) -> int:
        return len(self.fonts)

    def __iter__(self):
        return iter(self.fonts)

    def candidates(self, family: str, weight: int) -> list[FontDescriptor]:
        """All fonts, best substitute first.

        Same family beats the fallback family beats anything else; within
        each group the closest weight wins.
        """
        return sorted(
            self.fonts,
            key=lambda f: (f.family != family, f.family != self.fallback_family, abs(f.weight - weight)),
        )

    def match(self, family: str, weight: int) -> FontDescriptor | None:
        ranked = self.candidates(family, weight)
        return ranked[0] if ranked else None

    def face(self, family: str, weight: int, size: float) -> ImageFont.FreeTypeFont | None:
        """A loaded face at the given pixel size, or None if no font can be loaded."""
        key = (family, weight, size)
        if key in self._faces:
            return self._faces[key]
        for descriptor in self.candidates(family, weight):
            try:
                face = descriptor.load(size)
            except OSError:
                logger.warning("Unreadable font data for %s %d", descriptor.family, descriptor.weight)
                continue
            self._faces[key] = face
            return face
        return None


class FontResolver:
    """Resolves font binaries through the cache, local files and Google Fonts."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: FontCache | None = None,
        settings: Settings | None = None,
    ):
        self.client = client
        self.cache = cache if cache is not None else FontCache()
        self.settings = settings or get_settings()

    async def resolve_font(self, family: str, weight: int) -> bytes | None:
        """Font file bytes for family/weight, or None."""
        cached = self.cache.get(family, weight)
        if cached is not None:
            return cached

        data = self._read_local(family, weight)
        if data is None:
            data = await self._fetch_remote(family, weight)
        if data is None:
            logger.warning("Font %s %d unavailable, renderer will substitute", family, weight)
            return None

        self.cache.put(family, weight, data)
        return data

    async def resolve_font_set(self, elements: Iterable) -> FontSet:
        """Resolve every (family, weight) the elements use, plus the baseline font.

        Pairs are fetched concurrently. The bundled fallback file is added
        whenever the baseline family did not come back from the lookup.
        """
        baseline = (self.settings.fallback_font_family, self.settings.fallback_font_weight)
        needed = list(dict.fromkeys([(el.font_family, el.weight) for el in elements] + [baseline]))

        results = await asyncio.gather(*(self.resolve_font(family, weight) for family, weight in needed))
        fonts = [
            FontDescriptor(family, weight, data)
            for (family, weight), data in zip(needed, results)
            if data is not None
        ]

        if not any(f.family == baseline[0] for f in fonts):
            fallback = self.load_fallback()
            if fallback is not None:
                fonts.append(fallback)

        if not fonts:
            logger.error("No fonts resolved and no bundled fallback at %s", self.settings.fallback_font_path)
        return FontSet(fonts, *baseline)

    def load_fallback(self) -> FontDescriptor | None:
        """The bundled fallback font from disk."""
        path = Path(self.settings.fallback_font_path)
        try:
            data = path.read_bytes()
        except OSError:
            logger.warning("Bundled fallback font missing: %s", path)
            return None
        return FontDescriptor(self.settings.fallback_font_family, self.settings.fallback_font_weight, data)

    def local_paths(self, family: str, weight: int) -> list[Path]:
        """Candidate self-hosted files, e.g. assets/fonts/Montserrat/Montserrat-SemiBold.ttf."""
        suffix = WEIGHT_FILE_SUFFIXES.get(weight)
        if suffix is None:
            return []
        if "/" in family or "\\" in family or ".." in family:
            logger.warning("Refusing local font lookup for family %r", family)
            return []
        font_dir = Path(self.settings.font_dir)
        stem = family.replace(" ", "")
        paths = []
        for ext in (".ttf", ".otf"):
            filename = f"{stem}-{suffix}{ext}"
            paths += [font_dir / filename, font_dir / stem / filename]
        return paths

    def _read_local(self, family: str, weight: int) -> bytes | None:
        for path in self.local_paths(family, weight):
            if path.is_file():
                try:
                    return path.read_bytes()
                except OSError:
                    logger.warning("Could not read font file %s", path)
        return None

    async def _fetch_remote(self, family: str, weight: int) -> bytes | None:
        css = await self._fetch_stylesheet(family, weight)
        if css is None:
            return None
        url = extract_font_url(css)
        if url is None:
            logger.warning("No font URL in style sheet for %s %d", family, weight)
            return None
        response = await self._get(url)
        return response.content if response is not None else None

    async def _fetch_stylesheet(self, family: str, weight: int) -> str | None:
        response = await self._get(
            self.settings.fonts_css_url,
            params={"family": f"{family}:{weight}", "display": "swap"},
            headers={"User-Agent": self.settings.font_user_agent},
        )
        return response.text if response is not None else None

    async def _get(self, url: str, **kwargs) -> httpx.Response | None:
        try:
            response = await self.client.get(url, timeout=self.settings.font_fetch_timeout, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Font request failed for %s: %s", url, e)
            return None
        if not response.is_success:
            logger.warning("Font request %s returned %d", url, response.status_code)
            return None
        return response
