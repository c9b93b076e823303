import json
from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Slidecast API"
    app_version: str = "0.1.0"
    git_hash: str = "unknown"  # Set via GIT_HASH env var at build time
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "http://localhost:5173,http://localhost:3000"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from pipe/comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Pipe-separated (Cloud Run env vars cannot hold commas)
        if "|" in v:
            return [origin.strip() for origin in v.split("|") if origin.strip()]
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # File Upload
    max_upload_size_mb: int = 500

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Render engine
    render_work_dir_prefix: str = "slidecast_render_"

    # Photo pre-optimization before staging
    image_max_dimension: int = 1920
    image_jpeg_quality: int = 90


@lru_cache
def get_settings() -> Settings:
    return Settings()
