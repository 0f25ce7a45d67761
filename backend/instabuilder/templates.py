"""
Built-in carousel templates and text overrides.

Each template is a list of slides with tag/header/subtitle/body elements.
Callers fill a template by passing text overrides keyed by slide index and
element kind; the template itself is never modified.
"""

import logging
from dataclasses import dataclass

from instabuilder.config import get_settings
from instabuilder.models import GradientBackground, Slide, TextElement, new_text_element

logger = logging.getLogger(__name__)


class TemplateNotFound(KeyError):
    pass


@dataclass(frozen=True)
class TextOverride:
    slide_index: int
    element_kind: str
    text: str


def _template_slide(gradient: str, tag: dict, header: dict, subtitle: dict, body: dict) -> Slide:
    return Slide(
        background=GradientBackground(gradient=gradient),
        aspect_ratio="4:5",
        elements=[
            new_text_element("tag", **tag),
            new_text_element("header", **header),
            new_text_element("subtitle", **subtitle),
            new_text_element("body", font_size=12, font_weight="medium", **body),
        ],
    )


TEMPLATES = {
    "progress": {
        "id": "progress",
        "name": "Progress Update",
        "description": "Build-in-public update with header, subtitle and @handle",
        "background": "dark purple gradient",
        "notes": {
            "tag": "Short label, caps recommended. E.g. 'WEEK 3 UPDATE'",
            "header": "Main headline. Keep it concise, 5-10 words.",
            "subtitle": "Supporting detail or metric. 1-2 lines.",
            "body": "Handle or CTA.",
        },
        "build": lambda: [
            _template_slide(
                "linear-gradient(135deg, #0a0a0f 0%, #1a1224 100%)",
                tag={"text": "BUILD IN PUBLIC"},
                header={"text": "Was ich diese Woche gebaut habe", "font_size": 32, "y_percent": 40},
                subtitle={"text": "Von 0 auf 1.000 Nutzer in 30 Tagen", "y_percent": 62},
                body={"text": "@yourhandle", "color": "rgba(255,255,255,0.3)", "y_percent": 88},
            )
        ],
    },
    "tip": {
        "id": "tip",
        "name": "Hilfreicher Tipp",
        "description": "Single actionable tip with a strong headline",
        "background": "dark blue gradient",
        "notes": {
            "tag": "Short category label. E.g. 'PRO TIP', 'TRICK', 'HACK'",
            "header": "Bold statement or question. 3-8 words.",
            "subtitle": "Explanation of the tip. 1-3 sentences.",
            "body": "Handle or CTA.",
        },
        "build": lambda: [
            _template_slide(
                "linear-gradient(135deg, #0a0a0f 0%, #0f1a24 100%)",
                tag={"text": "PRO TIPP", "color": "#34d399"},
                header={"text": "Dein Titel hier", "font_size": 34, "font_family": "Bebas Neue", "y_percent": 40},
                subtitle={"text": "Kurze prägnante Beschreibung in 1-2 Sätzen.", "font_size": 15,
                          "font_family": "Poppins", "color": "rgba(255,255,255,0.55)", "y_percent": 64},
                body={"text": "@yourhandle", "color": "rgba(255,255,255,0.3)", "y_percent": 88},
            )
        ],
    },
    "luxury": {
        "id": "luxury",
        "name": "Luxury Lifestyle",
        "description": "Gold-accented post for cars, travel and lifestyle",
        "background": "dark gold gradient",
        "notes": {
            "tag": "Category label, use · as separator.",
            "header": "Aspirational headline. 3-7 words.",
            "subtitle": "Short quote or teaser. 1-2 sentences.",
            "body": "Handle or CTA.",
        },
        "build": lambda: [
            _template_slide(
                "linear-gradient(160deg, #0a0a0f 0%, #1a1500 60%, #0a0a0f 100%)",
                tag={"text": "LUXURY · CARS · LIFESTYLE", "font_size": 10, "font_family": "Cinzel", "color": "#fbbf24"},
                header={"text": "Dein Headline", "font_size": 36, "font_weight": "bold",
                        "font_family": "Cormorant Garamond", "y_percent": 42},
                subtitle={"text": "Subtitel oder Zitat kommt hier hin.", "font_size": 15, "font_family": "Lora",
                          "color": "rgba(255,255,255,0.5)", "y_percent": 63},
                body={"text": "@yourhandle", "color": "rgba(255,255,255,0.25)", "y_percent": 88},
            )
        ],
    },
}


def get_template(template_id: str) -> dict:
    """Get a template definition by ID."""
    try:
        return TEMPLATES[template_id]
    except KeyError:
        raise TemplateNotFound(template_id) from None


def instantiate_template(template_id: str) -> list[Slide]:
    """Fresh slides for a template; every call gets new ids."""
    return get_template(template_id)["build"]()


def list_templates() -> list[dict]:
    """Summaries of all built-in templates with their placeholder texts."""
    summaries = []
    for template in TEMPLATES.values():
        slides = template["build"]()
        summaries.append({
            "id": template["id"],
            "name": template["name"],
            "description": template["description"],
            "slide_count": len(slides),
            "example_text_elements": [
                {"type": el.kind, "placeholder": el.text}
                for slide in slides
                for el in slide.elements
            ],
        })
    return summaries


def describe_template(template_id: str) -> dict:
    """Element-level structure of a template plus an example override request."""
    template = get_template(template_id)
    slides = template["build"]()
    described = [
        {
            "slide_index": index,
            "aspect_ratio": slide.aspect_ratio,
            "background": template["background"],
            "elements": [
                {
                    "type": el.kind,
                    "default_text": el.text,
                    "font_size": el.font_size,
                    "position_y_percent": el.y_percent,
                    "align": el.align,
                    "note": template["notes"].get(el.kind, ""),
                }
                for el in slide.elements
            ],
        }
        for index, slide in enumerate(slides)
    ]
    return {
        "id": template["id"],
        "name": template["name"],
        "description": template["description"],
        "slide_count": len(slides),
        "slides": described,
        "example_request": {
            "templateId": template["id"],
            "title": "My post title",
            "textOverrides": [
                {"slideIndex": sl["slide_index"], "elementType": el["type"], "text": f"<your {el['type']} text>"}
                for sl in described
                for el in sl["elements"]
                if el["type"] != "body"
            ],
        },
    }


def parse_overrides(raw) -> list[TextOverride]:
    """Keep only well-formed override entries from a request payload."""
    if not isinstance(raw, (list, tuple)):
        return []
    overrides = []
    for item in raw:
        if isinstance(item, TextOverride):
            overrides.append(item)
            continue
        if not isinstance(item, dict):
            continue
        index, kind, text = item.get("slideIndex"), item.get("elementType"), item.get("text")
        if isinstance(index, int) and not isinstance(index, bool) and kind and isinstance(text, str):
            overrides.append(TextOverride(slide_index=index, element_kind=kind, text=text))
    return overrides


def _override_text(text: str, max_chars: int) -> str:
    # Callers often send the two characters "\n" instead of a newline
    return text.replace("\\n", "\n")[:max_chars]


def apply_text_overrides(slides: list[Slide], overrides: list[TextOverride], max_chars: int | None = None) -> list[Slide]:
    """Return new slides with override text applied to unlocked elements.

    The first override matching an element's kind on its slide wins. Locked
    elements keep their text. Input slides are left untouched; every returned
    slide and element gets a fresh id.
    """
    if max_chars is None:
        max_chars = get_settings().max_override_chars

    result = []
    for index, slide in enumerate(slides):
        slide_overrides = [o for o in overrides if o.slide_index == index]
        elements: list[TextElement] = []
        for el in slide.elements:
            override = next((o for o in slide_overrides if o.element_kind == el.kind), None)
            if override is not None and not el.locked:
                el = el.model_copy(update={"text": _override_text(override.text, max_chars)})
            elif override is not None:
                logger.debug("Skipping override for locked %s on slide %d", el.kind, index)
            elements.append(el)
        result.append(slide.model_copy(update={"elements": elements}).duplicate())
    return result
