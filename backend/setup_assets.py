#!/usr/bin/env python3
"""
Setup script to download the bundled fallback font and, optionally, self-host
the editor's catalog fonts. Run this before starting the server.

    python setup_assets.py            # fallback font only
    python setup_assets.py --catalog  # plus every catalog family/weight
"""

import argparse
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path

from instabuilder.config import get_settings
from instabuilder.design_templates import FONT_WEIGHTS, FONTS, WEIGHT_FILE_SUFFIXES
from instabuilder.services.font_service import extract_font_url

settings = get_settings()
FONTS_DIR = Path(settings.font_dir)
FALLBACK_PATH = Path(settings.fallback_font_path)


def setup_directories():
    """Create required directories."""
    print("Creating directories...")
    FONTS_DIR.mkdir(parents=True, exist_ok=True)
    FALLBACK_PATH.parent.mkdir(parents=True, exist_ok=True)
    print("✓ Directories created")


def fetch(url: str, user_agent: str | None = None) -> bytes:
    headers = {"User-Agent": user_agent} if user_agent else {}
    with urllib.request.urlopen(urllib.request.Request(url, headers=headers), timeout=30) as response:
        return response.read()


def download_font(family: str, weight: int, dest: Path) -> bool:
    """Download one family/weight as TTF through the Google Fonts CSS API."""
    if dest.exists():
        print(f"✓ {dest.name} already exists, skipping download")
        return True

    query = urllib.parse.urlencode({"family": f"{family}:{weight}", "display": "swap"})
    try:
        css = fetch(f"{settings.fonts_css_url}?{query}", settings.font_user_agent).decode("utf-8")
        url = extract_font_url(css)
        if url is None:
            print(f"✗ No font file listed for {family} {weight}")
            return False
        dest.write_bytes(fetch(url))
        print(f"  Downloaded: {dest.name}")
        return True
    except (urllib.error.URLError, OSError) as e:
        print(f"✗ Failed to download {family} {weight}: {e}")
        return False


def download_catalog():
    """Self-host every catalog family in every editor weight."""
    for font in FONTS:
        stem = font["family"].replace(" ", "")
        for weight in FONT_WEIGHTS.values():
            download_font(font["family"], weight, FONTS_DIR / stem / f"{stem}-{WEIGHT_FILE_SUFFIXES[weight]}.ttf")


def check_assets() -> bool:
    """Check required assets and provide instructions."""
    print("\nAsset Status:")
    if FALLBACK_PATH.exists():
        print(f"✓ {FALLBACK_PATH} found")
        return True
    print(f"✗ {FALLBACK_PATH} MISSING")
    print(f"  → Download {settings.fallback_font_family} from https://fonts.google.com")
    print(f"  → and place the regular TTF at: {FALLBACK_PATH}")
    return False


def main():
    parser = argparse.ArgumentParser(description="Prepare font assets for the slide renderer")
    parser.add_argument("--catalog", action="store_true", help="also self-host all catalog fonts")
    args = parser.parse_args()

    print("=" * 50)
    print("Carousel Slide Renderer - Asset Setup")
    print("=" * 50)
    print()

    setup_directories()
    download_font(settings.fallback_font_family, settings.fallback_font_weight, FALLBACK_PATH)
    if args.catalog:
        download_catalog()

    ready = check_assets()

    print()
    print("=" * 50)
    if ready:
        print("✓ All assets ready! You can start the server.")
    else:
        print("⚠ Fallback font is missing. Slides render only while Google Fonts is reachable.")
    print("=" * 50)


if __name__ == "__main__":
    main()
