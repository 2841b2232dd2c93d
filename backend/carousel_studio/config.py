from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Storage
    database_url: str = "sqlite+aiosqlite:///./carousel_studio.db"  # Set via DATABASE_URL env var

    # Rendering
    font_path: str = "assets/fonts"
    slide_width: int = 1080
    slide_height: int = 1080
    default_background_color: str = "#ffffff"
    char_width_ratio: float = 0.6  # Estimated glyph width as a fraction of font size
    render_workers: int = 4

    # Export / import
    pdf_page_size: int = 1080
    pdf_placeholder_pages: int = 5

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
