"""
Slide backgrounds: CSS colors, linear gradients and cover-fit images.

Anything that cannot be parsed or fetched returns None so the renderer can
paint the default background instead.
"""

import base64
import binascii
import logging
import math
import re
from dataclasses import dataclass
from io import BytesIO

import httpx
from PIL import Image, ImageColor, UnidentifiedImageError

from instabuilder.config import Settings, get_settings

logger = logging.getLogger(__name__)

RGBA = tuple[int, int, int, int]

_HEX = re.compile(r"^#([0-9a-f]{3,4}|[0-9a-f]{6}|[0-9a-f]{8})$")
_FUNC = re.compile(r"^(rgba?)\((.*)\)$")
_ANGLE = re.compile(r"^(-?\d*\.?\d+)(deg|rad|turn|grad)$")
_STOP_POSITION = re.compile(r"\s+(-?\d*\.?\d+)%$")

ANGLE_UNITS = {"deg": 1.0, "rad": 180 / math.pi, "turn": 360.0, "grad": 0.9}
SIDE_ANGLES = {"top": 0.0, "right": 90.0, "bottom": 180.0, "left": 270.0}


def _channel(token: str) -> int:
    if token.endswith("%"):
        return round(max(0.0, min(100.0, float(token[:-1]))) * 2.55)
    return round(max(0.0, min(255.0, float(token))))


def _alpha(token: str) -> int:
    value = float(token[:-1]) / 100 if token.endswith("%") else float(token)
    return round(max(0.0, min(1.0, value)) * 255)


def parse_css_color(value: str) -> RGBA | None:
    """RGBA for a CSS color string (hex, rgb()/rgba(), named), None if unparseable."""
    if not isinstance(value, str):
        return None
    text = value.strip().lower()
    if not text:
        return None
    if text == "transparent":
        return (0, 0, 0, 0)

    if _HEX.match(text):
        digits = text[1:]
        if len(digits) in (3, 4):
            digits = "".join(ch * 2 for ch in digits)
        if len(digits) == 6:
            digits += "ff"
        return tuple(int(digits[i:i + 2], 16) for i in range(0, 8, 2))

    func = _FUNC.match(text)
    if func:
        # rgb(1, 2, 3) / rgba(1, 2, 3, 0.5) / rgb(1 2 3 / 50%)
        parts = [p for p in re.split(r"[\s,/]+", func.group(2).strip()) if p]
        if len(parts) not in (3, 4):
            return None
        try:
            r, g, b = (_channel(p) for p in parts[:3])
            a = _alpha(parts[3]) if len(parts) == 4 else 255
        except ValueError:
            return None
        return (r, g, b, a)

    try:
        return ImageColor.getcolor(text, "RGBA")
    except ValueError:
        return None


def split_top_level(text: str) -> list[str]:
    """Split on commas that are not inside parentheses."""
    parts, depth, current = [], 0, []
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    parts.append("".join(current).strip())
    return parts


@dataclass(frozen=True)
class ColorStop:
    color: RGBA
    position: float | None = None


@dataclass(frozen=True)
class LinearGradient:
    """A CSS linear gradient; angle in degrees, 0 = to top, clockwise."""
    angle: float | None
    stops: tuple[ColorStop, ...]
    corner: tuple[str, str] | None = None

    def angle_for(self, width: int, height: int) -> float:
        """Angle in degrees for a box; corner directions depend on the box shape."""
        if self.corner is None:
            return 180.0 if self.angle is None else self.angle
        vertical, horizontal = self.corner
        dx = height if horizontal == "right" else -height
        dy = -width if vertical == "top" else width
        return math.degrees(math.atan2(dx, -dy)) % 360

    def resolved_positions(self) -> list[float]:
        """Stop positions in 0..1 per CSS: ends default to 0/1, gaps are spread evenly."""
        positions = [s.position for s in self.stops]
        if positions[0] is None:
            positions[0] = 0.0
        if positions[-1] is None:
            positions[-1] = 1.0
        # Positions never go backwards
        highest = positions[0]
        for i, pos in enumerate(positions):
            if pos is not None:
                highest = max(highest, pos)
                positions[i] = highest
        i = 1
        while i < len(positions):
            if positions[i] is None:
                start = i - 1
                end = i
                while positions[end] is None:
                    end += 1
                step = (positions[end] - positions[start]) / (end - start)
                for j in range(start + 1, end):
                    positions[j] = positions[start] + step * (j - start)
                i = end
            i += 1
        return positions


def _parse_direction(token: str):
    """(angle, corner) for a direction token, or None when it is not a direction."""
    angle = _ANGLE.match(token)
    if angle:
        return float(angle.group(1)) * ANGLE_UNITS[angle.group(2)] % 360, None
    words = token.split()
    if len(words) < 2 or words[0] != "to":
        return None
    sides = words[1:]
    if len(sides) == 1 and sides[0] in SIDE_ANGLES:
        return SIDE_ANGLES[sides[0]], None
    if len(sides) == 2:
        vertical = next((s for s in sides if s in ("top", "bottom")), None)
        horizontal = next((s for s in sides if s in ("left", "right")), None)
        if vertical and horizontal:
            return None, (vertical, horizontal)
    return None


def parse_linear_gradient(css: str) -> LinearGradient | None:
    """Parse 'linear-gradient(135deg, #000 0%, #fff 100%)' style strings."""
    if not isinstance(css, str):
        return None
    text = css.strip().lower()
    if not text.startswith("linear-gradient(") or not text.endswith(")"):
        return None
    parts = split_top_level(text[len("linear-gradient("):-1])

    angle, corner = None, None
    direction = _parse_direction(parts[0]) if parts else None
    if direction is not None:
        angle, corner = direction
        parts = parts[1:]

    stops = []
    for part in parts:
        position = None
        match = _STOP_POSITION.search(part)
        if match:
            position = float(match.group(1)) / 100
            part = part[:match.start()]
        color = parse_css_color(part)
        if color is None:
            return None
        stops.append(ColorStop(color, position))

    if not stops:
        return None
    if len(stops) == 1:
        stops.append(stops[0])
    return LinearGradient(angle=angle, stops=tuple(stops), corner=corner)


def _gradient_lut(gradient: LinearGradient) -> list[list[int]]:
    """Per-channel 256-entry lookup tables mapping gradient progress to color."""
    positions = gradient.resolved_positions()
    colors = [s.color for s in gradient.stops]
    tables = [[], [], [], []]
    for i in range(256):
        t = i / 255
        if t <= positions[0]:
            color = colors[0]
        elif t >= positions[-1]:
            color = colors[-1]
        else:
            k = next(k for k in range(1, len(positions)) if t <= positions[k])
            span = positions[k] - positions[k - 1]
            f = (t - positions[k - 1]) / span if span > 0 else 1.0
            color = tuple(round(a + (b - a) * f) for a, b in zip(colors[k - 1], colors[k]))
        for channel in range(4):
            tables[channel].append(color[channel])
    return tables


def render_linear_gradient(gradient: LinearGradient, size: tuple[int, int]) -> Image.Image:
    """Paint the gradient into an RGBA image of the given size.

    A horizontal 0..255 ramp as long as the CSS gradient line is rotated into
    the gradient direction, cropped to the canvas and mapped through the
    stop colors.
    """
    width, height = size
    theta = math.radians(gradient.angle_for(width, height))
    line_length = max(1.0, abs(width * math.sin(theta)) + abs(height * math.cos(theta)))

    side = math.ceil(math.hypot(width, height)) + 2
    center = side / 2
    ramp = bytes(
        round(max(0.0, min(1.0, (x + 0.5 - center) / line_length + 0.5)) * 255)
        for x in range(side)
    )
    progress = Image.frombytes("L", (side, 1), ramp).resize((side, side), Image.Resampling.NEAREST)
    progress = progress.rotate(90 - math.degrees(theta), resample=Image.Resampling.BILINEAR)

    left = (side - width) // 2
    top = (side - height) // 2
    progress = progress.crop((left, top, left + width, top + height))

    return Image.merge("RGBA", [progress.point(table) for table in _gradient_lut(gradient)])


def resize_cover(img: Image.Image, size: tuple[int, int]) -> Image.Image:
    """
    Resize to cover the target canvas (no stretching), then center-crop.
    """
    tw, th = size
    iw, ih = img.size
    if iw <= 0 or ih <= 0:
        return img.resize(size, Image.Resampling.LANCZOS)

    scale = max(tw / iw, th / ih)
    nw, nh = max(tw, round(iw * scale)), max(th, round(ih * scale))
    resized = img.resize((nw, nh), Image.Resampling.LANCZOS)

    left = max(0, (nw - tw) // 2)
    top = max(0, (nh - th) // 2)
    return resized.crop((left, top, left + tw, top + th))


def decode_data_url(url: str) -> bytes | None:
    """Payload of a base64 data: URL."""
    header, _, payload = url.partition(",")
    if not header.startswith("data:") or not header.endswith(";base64"):
        return None
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError):
        return None


class BackgroundImageLoader:
    """Fetches image backgrounds (http(s) or data: URLs) as RGBA images."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings | None = None):
        self.client = client
        self.settings = settings or get_settings()

    async def load(self, url: str) -> Image.Image | None:
        if url.startswith("data:"):
            data = decode_data_url(url)
        else:
            data = await self._download(url)
        if data is None:
            return None
        try:
            with Image.open(BytesIO(data)) as img:
                return img.convert("RGBA")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            logger.warning("Background image is not a readable image: %s", e)
            return None

    async def _download(self, url: str) -> bytes | None:
        try:
            response = await self.client.get(url, timeout=self.settings.image_fetch_timeout, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Background image fetch failed for %s: %s", url[:80], e)
            return None
        if not response.is_success:
            logger.warning("Background image %s returned %d", url[:80], response.status_code)
            return None
        return response.content
