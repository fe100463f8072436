"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from backend.config import Settings, get_settings
from backend.db import (
    BoardRepository,
    InMemoryBoardRepository,
    JsonFileBoardRepository,
    SqlBoardRepository,
)
from backend.storage import CosStorageClient, InlineMediaStorage, MediaStorage
from media_pipeline.video_compression import (
    CloudConvertStrategy,
    FfmpegStrategy,
    VideoCompressionStrategy,
    VideoCompressor,
)

logger = logging.getLogger(__name__)

_repository: BoardRepository | None = None
_media_storage: MediaStorage | None = None
_video_compressor: VideoCompressor | None = None


def build_repository(
    backend: str,
    *,
    data_file: Optional[str] = None,
    database_url: Optional[str] = None,
) -> BoardRepository:
    """Create a repository for `memory`, `file` or `database`."""
    if backend == "file":
        if not data_file:
            raise ValueError("A data file path is required for the file backend")
        return JsonFileBoardRepository(data_file)
    if backend == "database":
        if not database_url:
            logger.warning("BOARD_BACKEND=database but DATABASE_URL is not set; using memory")
            return InMemoryBoardRepository()
        return SqlBoardRepository(database_url)
    if backend != "memory":
        raise ValueError(f"Unknown board backend: {backend}")
    return InMemoryBoardRepository()


def get_repository() -> BoardRepository:
    """
    Return a singleton repository so in-memory state persists across requests.
    """
    global _repository
    if _repository:
        return _repository

    settings = get_settings()
    _repository = build_repository(
        settings.board_backend,
        data_file=settings.board_data_file,
        database_url=settings.database_url,
    )
    logger.info("Board backend: %s", _repository.kind)
    return _repository


def get_media_storage() -> MediaStorage:
    global _media_storage
    if _media_storage:
        return _media_storage

    settings = get_settings()
    if settings.cos_bucket:
        _media_storage = CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            expires_in=settings.media_url_expires_in,
        )
    else:
        _media_storage = InlineMediaStorage(format=settings.media_inline_format)
    return _media_storage


def build_video_strategies(settings: Settings) -> list[VideoCompressionStrategy]:
    strategies: list[VideoCompressionStrategy] = []
    for name in settings.video_compression_strategies:
        if name == "cloudconvert":
            if settings.cloudconvert_api_key:
                strategies.append(CloudConvertStrategy(api_key=settings.cloudconvert_api_key))
        elif name == "ffmpeg":
            if settings.ffmpeg_enabled:
                strategies.append(
                    FfmpegStrategy(
                        binary=settings.ffmpeg_binary, quality=settings.video_quality
                    )
                )
        else:
            logger.warning("Ignoring unknown video compression strategy: %s", name)
    return strategies


def get_video_compressor() -> VideoCompressor:
    global _video_compressor
    if _video_compressor:
        return _video_compressor

    strategies = build_video_strategies(get_settings())
    if not strategies:
        logger.warning("No video compression backend configured; uploads pass through")
    _video_compressor = VideoCompressor(strategies)
    return _video_compressor


def reset_dependencies() -> None:
    """Drop cached singletons (settings changes, tests)."""
    global _repository, _media_storage, _video_compressor
    _repository = None
    _media_storage = None
    _video_compressor = None
