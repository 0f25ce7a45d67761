"""
Slide data model.

Slides arrive as editor JSON (camelCase, loosely typed). Parsing is lenient:
missing or invalid fields fall back to their defaults instead of raising,
so a half-filled payload from the editor still renders.
"""

import logging
import math
import uuid
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from instabuilder.design_templates import (
    DEFAULT_FONT_FAMILY,
    ELEMENT_DEFAULTS,
    FONT_WEIGHTS,
    get_element_defaults,
    weight_value,
)

logger = logging.getLogger(__name__)

ElementKind = Literal["header", "subtitle", "body", "tag"]
FontWeight = Literal["normal", "medium", "semibold", "bold", "extrabold"]
TextAlign = Literal["left", "center", "right"]
VerticalAnchor = Literal["top", "center", "bottom"]
AspectRatio = Literal["1:1", "4:5", "9:16"]

ELEMENT_KINDS = tuple(ELEMENT_DEFAULTS)
TEXT_ALIGNS = ("left", "center", "right")
VERTICAL_ANCHORS = ("top", "center", "bottom")
ASPECT_RATIOS = ("1:1", "4:5", "9:16")

DEFAULT_ASPECT_RATIO = "4:5"
DEFAULT_BACKGROUND_COLOR = "#0a0a0f"
DEFAULT_TEXT_COLOR = "#ffffff"

MIN_FONT_SIZE, MAX_FONT_SIZE = 8, 72
MIN_Y_PERCENT, MAX_Y_PERCENT = 5, 95


def new_id() -> str:
    """Random opaque id for slides and elements."""
    return uuid.uuid4().hex[:20]


def _as_number(value) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) or math.isinf(number) else number


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_grain_intensity(value) -> int:
    """Grain intensity as an int in 0-100; anything unusable is 0."""
    number = _as_number(value)
    if number is None:
        return 0
    return int(_clamp(round(number), 0, 100))


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def to_payload(self) -> dict:
        """Editor JSON for this record."""
        return self.model_dump(by_alias=True)


class TextElement(_Record):
    id: str = Field(default_factory=new_id)
    kind: ElementKind = Field("body", alias="type")
    text: str = ""
    font_size: int = Field(16, alias="fontSize")
    font_weight: FontWeight = Field("normal", alias="fontWeight")
    font_family: str = Field(DEFAULT_FONT_FAMILY, alias="fontFamily")
    color: str = DEFAULT_TEXT_COLOR
    align: TextAlign = "center"
    vertical_anchor: VerticalAnchor = Field("center", alias="verticalAnchor")
    y_percent: float = Field(50, alias="y")
    locked: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, v):
        return v if isinstance(v, str) and v else new_id()

    @field_validator("kind", mode="before")
    @classmethod
    def _kind(cls, v):
        return v if v in ELEMENT_KINDS else "body"

    @field_validator("text", mode="before")
    @classmethod
    def _text(cls, v):
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("font_size", mode="before")
    @classmethod
    def _font_size(cls, v):
        number = _as_number(v)
        if number is None:
            return 16
        return int(_clamp(round(number), MIN_FONT_SIZE, MAX_FONT_SIZE))

    @field_validator("font_weight", mode="before")
    @classmethod
    def _font_weight(cls, v):
        if v in FONT_WEIGHTS:
            return v
        number = _as_number(v)
        for name, value in FONT_WEIGHTS.items():
            if number == value:
                return name
        return "normal"

    @field_validator("font_family", mode="before")
    @classmethod
    def _font_family(cls, v):
        return v.strip() if isinstance(v, str) and v.strip() else DEFAULT_FONT_FAMILY

    @field_validator("color", mode="before")
    @classmethod
    def _color(cls, v):
        return v.strip() if isinstance(v, str) and v.strip() else DEFAULT_TEXT_COLOR

    @field_validator("align", mode="before")
    @classmethod
    def _align(cls, v):
        return v if v in TEXT_ALIGNS else "center"

    @field_validator("vertical_anchor", mode="before")
    @classmethod
    def _vertical_anchor(cls, v):
        return v if v in VERTICAL_ANCHORS else "center"

    @field_validator("y_percent", mode="before")
    @classmethod
    def _y_percent(cls, v):
        number = _as_number(v)
        if number is None:
            return 50
        return _clamp(number, MIN_Y_PERCENT, MAX_Y_PERCENT)

    @field_validator("locked", mode="before")
    @classmethod
    def _locked(cls, v):
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("true", "1")

    @property
    def weight(self) -> int:
        return weight_value(self.font_weight)

    @property
    def lines(self) -> list[str]:
        """Text split on newlines; empty lines keep their slot as a single space."""
        return [line or " " for line in self.text.split("\n")]


class SolidBackground(_Record):
    kind: Literal["solid"] = Field("solid", alias="type")
    color: str


class GradientBackground(_Record):
    kind: Literal["gradient"] = Field("gradient", alias="type")
    gradient: str


class ImageBackground(_Record):
    kind: Literal["image"] = Field("image", alias="type")
    image_url: str = Field(alias="imageUrl")


SlideBackground = Union[SolidBackground, GradientBackground, ImageBackground]


def default_background() -> SolidBackground:
    return SolidBackground(color=DEFAULT_BACKGROUND_COLOR)


def parse_background(raw) -> SlideBackground:
    """Turn a background payload into one of the three variants, or the default."""
    if isinstance(raw, (SolidBackground, GradientBackground, ImageBackground)):
        return raw
    if not isinstance(raw, dict):
        return default_background()

    kind = raw.get("type", raw.get("kind"))

    def field(name: str) -> str | None:
        value = raw.get(name)
        return value.strip() if isinstance(value, str) and value.strip() else None

    if kind == "solid" and field("color"):
        return SolidBackground(color=field("color"))
    if kind == "gradient" and field("gradient"):
        return GradientBackground(gradient=field("gradient"))
    if kind == "image" and (field("imageUrl") or field("image_url")):
        return ImageBackground(image_url=field("imageUrl") or field("image_url"))

    logger.info("Unusable background %r, using default", raw)
    return default_background()


class Slide(_Record):
    id: str = Field(default_factory=new_id)
    background: SlideBackground = Field(default_factory=default_background)
    aspect_ratio: AspectRatio = Field(DEFAULT_ASPECT_RATIO, alias="aspectRatio")
    elements: list[TextElement] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, v):
        return v if isinstance(v, str) and v else new_id()

    @field_validator("background", mode="before")
    @classmethod
    def _background(cls, v):
        return parse_background(v)

    @field_validator("aspect_ratio", mode="before")
    @classmethod
    def _aspect_ratio(cls, v):
        if v in ASPECT_RATIOS:
            return v
        if v is not None:
            logger.info("Unknown aspect ratio %r, using %s", v, DEFAULT_ASPECT_RATIO)
        return DEFAULT_ASPECT_RATIO

    @field_validator("elements", mode="before")
    @classmethod
    def _elements(cls, v):
        if not isinstance(v, (list, tuple)):
            return []
        return [el for el in v if isinstance(el, (dict, TextElement))]

    @classmethod
    def from_payload(cls, raw) -> "Slide":
        """Parse editor JSON; a non-object payload gives an empty default slide."""
        if isinstance(raw, Slide):
            return raw
        return cls.model_validate(raw if isinstance(raw, dict) else {})

    def duplicate(self) -> "Slide":
        """Copy with fresh ids for the slide and every element."""
        return self.model_copy(
            update={
                "id": new_id(),
                "elements": [el.model_copy(update={"id": new_id()}) for el in self.elements],
            }
        )


def parse_slides(raw) -> list[Slide]:
    """Parse a list of slide payloads."""
    if not isinstance(raw, (list, tuple)):
        return []
    return [Slide.from_payload(item) for item in raw]


def new_text_element(kind: str, **overrides) -> TextElement:
    """Create an element with the kind's default style.

    Defaults apply only here; later edits are free to change any of them.
    """
    values = get_element_defaults(kind)
    values.update(kind=kind, align="center", vertical_anchor="center")
    values.update(overrides)
    return TextElement(**values)


def make_default_slide() -> Slide:
    """The starter slide shown in a new carousel."""
    return Slide(
        background=GradientBackground(gradient="linear-gradient(135deg, #0a0a0f 0%, #111118 100%)"),
        aspect_ratio="4:5",
        elements=[
            new_text_element("header", text="Dein Titel", font_size=32, y_percent=40),
            new_text_element("subtitle", text="Subtitel hier", color="rgba(255,255,255,0.55)", y_percent=60),
            new_text_element("body", text="@yourhandle", font_size=12, font_weight="medium",
                             color="rgba(255,255,255,0.3)", y_percent=88),
        ],
    )
