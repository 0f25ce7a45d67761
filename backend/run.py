#!/usr/bin/env python3
"""
Start the carousel slide renderer.
"""

from pathlib import Path

import uvicorn
from instabuilder.config import get_settings
from instabuilder.services.scale import ScaleMapper

settings = get_settings()

if __name__ == "__main__":
    mapper = ScaleMapper(settings)
    sizes = ", ".join(f"{ratio} {w}x{h}" for ratio in ("1:1", "4:5", "9:16") for w, h in [mapper.size_for(ratio)])
    fallback = "found" if Path(settings.fallback_font_path).is_file() else "MISSING"

    print("=" * 50)
    print("Carousel Slide Renderer")
    print("=" * 50)
    print(f"Slides: {sizes} (max {settings.max_export_slides} per export)")
    print(f"Fonts: {settings.font_dir}, fallback {settings.fallback_font_family} {fallback}")
    print(f"Render API: http://{settings.host}:{settings.port}/api/canvas/render")
    print("=" * 50)

    uvicorn.run(
        "instabuilder.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
