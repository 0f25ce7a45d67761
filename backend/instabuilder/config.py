from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Output canvas - width is fixed, aspect ratio only changes height
    slide_width: int = 1080

    # The editor preview is authored at this width (max-w-[380px], px-6)
    design_width: int = 380
    design_padding: int = 24
    line_height: float = 1.3

    default_background: str = "#0a0a0f"
    default_text_color: str = "#ffffff"

    # Grain overlay
    grain_tile_size: int = 256
    grain_max_opacity: float = 0.45

    # Export
    max_export_slides: int = 20
    max_override_chars: int = 500

    # Fonts
    fonts_css_url: str = "https://fonts.googleapis.com/css"
    # Old-style client identity so the CSS points at TTF files instead of woff2
    font_user_agent: str = "Mozilla/5.0 (compatible; Googlebot/2.1)"
    font_fetch_timeout: float = 10.0
    font_dir: str = "assets/fonts"
    fallback_font_path: str = "assets/fonts/Inter-Regular.ttf"
    fallback_font_family: str = "Inter"
    fallback_font_weight: int = 400

    image_fetch_timeout: float = 15.0

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000


@lru_cache()
def get_settings() -> Settings:
    return Settings()
