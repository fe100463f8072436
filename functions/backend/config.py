"""
Configuration and settings for the board backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])
    # The anonymous author id travels in request bodies, not cookies.
    cors_allow_credentials: bool = Field(default=False)

    # Board storage: memory | file | database
    board_backend: Literal["memory", "file", "database"] = Field(default="memory")
    board_data_file: str = Field(default="data/board.json")
    # Any SQLAlchemy URL (Postgres expected in production)
    database_url: Optional[str] = Field(default=None)

    # Inline media encoding when no object storage is configured
    media_inline_format: Literal["data_url", "base64"] = Field(default="data_url")

    # S3-compatible storage (Tencent COS)
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    cos_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    media_url_expires_in: int = Field(default=3600, ge=60, le=86400)

    # Uploads
    max_upload_mb: float = Field(default=10, gt=0)
    compress_uploaded_images: bool = Field(default=False)
    image_max_width: int = Field(default=1920, gt=0)
    image_max_height: int = Field(default=1080, gt=0)
    image_quality: float = Field(default=0.8, gt=0, le=1)

    # Video compression chain, tried in order
    video_compression_strategies: list[str] = Field(
        default_factory=lambda: ["cloudconvert", "ffmpeg"]
    )
    cloudconvert_api_key: Optional[str] = Field(default=None)
    ffmpeg_enabled: bool = Field(default=False)
    ffmpeg_binary: str = Field(default="ffmpeg")
    video_quality: float = Field(default=0.8, gt=0, le=1)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
