"""
Design catalog for the carousel editor.

Three fixed lookups shared by the editor payloads and the renderer:
1. FONTS - the font families offered in the picker (display vs. body)
2. FONT WEIGHTS - weight names used in slide JSON and their numeric values
3. ELEMENT DEFAULTS - starting style for each text element kind
"""

from typing import Literal

FontCategory = Literal["display", "body"]


# ============================================
# FONTS
# ============================================
FONTS = [
    # Display / header
    {"family": "Playfair Display", "category": "display", "sample_text": "Luxury & Style"},
    {"family": "Cormorant Garamond", "category": "display", "sample_text": "Editorial Serif"},
    {"family": "Bebas Neue", "category": "display", "sample_text": "BOLD IMPACT"},
    {"family": "Cinzel", "category": "display", "sample_text": "PRESTIGE CLASS"},
    {"family": "Abril Fatface", "category": "display", "sample_text": "Statement Bold"},
    {"family": "DM Serif Display", "category": "display", "sample_text": "Modern Serif"},
    {"family": "Josefin Sans", "category": "display", "sample_text": "Art Deco Clean"},
    {"family": "Raleway", "category": "display", "sample_text": "Fashion Forward"},
    {"family": "Great Vibes", "category": "display", "sample_text": "Elegant Script"},
    # Body / running text
    {"family": "Inter", "category": "body", "sample_text": "Clean & Modern"},
    {"family": "Poppins", "category": "body", "sample_text": "Friendly Round"},
    {"family": "Montserrat", "category": "body", "sample_text": "Geometric Sans"},
    {"family": "DM Sans", "category": "body", "sample_text": "Minimal Clear"},
    {"family": "Lato", "category": "body", "sample_text": "Humanist Sans"},
    {"family": "Nunito", "category": "body", "sample_text": "Rounded Modern"},
    {"family": "Lora", "category": "body", "sample_text": "Readable Serif"},
    {"family": "Source Sans 3", "category": "body", "sample_text": "Adobe Classic"},
]

DEFAULT_FONT_FAMILY = "Inter"


# ============================================
# FONT WEIGHTS
# ============================================
FONT_WEIGHTS = {
    "normal": 400,
    "medium": 500,
    "semibold": 600,
    "bold": 700,
    "extrabold": 800,
}

# File-name suffixes for self-hosted fonts (Montserrat-SemiBold.ttf etc.)
WEIGHT_FILE_SUFFIXES = {
    400: "Regular",
    500: "Medium",
    600: "SemiBold",
    700: "Bold",
    800: "ExtraBold",
}


# ============================================
# ELEMENT DEFAULTS
# ============================================
ELEMENT_DEFAULTS = {
    "header": {
        "text": "Titel",
        "font_size": 30,
        "font_weight": "extrabold",
        "font_family": "Playfair Display",
        "color": "#ffffff",
        "y_percent": 35,
    },
    "subtitle": {
        "text": "Subtitel",
        "font_size": 16,
        "font_weight": "normal",
        "font_family": "Inter",
        "color": "rgba(255,255,255,0.6)",
        "y_percent": 55,
    },
    "body": {
        "text": "Text",
        "font_size": 13,
        "font_weight": "normal",
        "font_family": "Inter",
        "color": "rgba(255,255,255,0.45)",
        "y_percent": 70,
    },
    "tag": {
        "text": "LABEL",
        "font_size": 11,
        "font_weight": "semibold",
        "font_family": "Montserrat",
        "color": "#60a5fa",
        "y_percent": 15,
    },
}


def weight_value(name: str) -> int:
    """Numeric weight for a weight name, 400 for anything unknown."""
    return FONT_WEIGHTS.get(name, 400)


def get_element_defaults(kind: str) -> dict:
    """Get the creation-time style defaults for an element kind."""
    return dict(ELEMENT_DEFAULTS.get(kind, ELEMENT_DEFAULTS["body"]))


def list_fonts(category: FontCategory | None = None) -> list[dict]:
    """List catalog fonts, optionally only one category."""
    return [dict(f) for f in FONTS if category is None or f["category"] == category]
