"""
HTTP routes for the board API.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.config import Settings, get_settings
from backend.db import (
    BoardRepository,
    NoteRecord,
    PostRecord,
    RepositoryError,
    utc_now_iso,
)
from backend.dependencies import (
    get_media_storage,
    get_repository,
    get_video_compressor,
)
from backend.schemas import (
    CompressImageRequest,
    CompressImageResponse,
    CompressVideoRequest,
    CompressVideoResponse,
    DeleteResponse,
    HealthResponse,
    NoteCreateRequest,
    NoteResponse,
    NoteUpdateRequest,
    PostCreateRequest,
    PostResponse,
    PostUpdateRequest,
)
from backend.storage import MediaStorage, MediaStorageError
from media_pipeline.compression import (
    CompressionError,
    format_file_size,
    is_file_too_large,
)
from media_pipeline.image_compression import compress_image
from media_pipeline.video_compression import VideoCompressor
from shared.identity import is_same_author, normalize_author_name
from shared.mime import (
    decode_base64_payload,
    encode_base64,
    guess_mime_type,
    is_image_mime,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# GIFs lose their animation when re-encoded.
SKIP_SERVER_COMPRESSION = {"image/gif"}


def _missing(*values) -> bool:
    return any(value is None or (isinstance(value, str) and not value.strip()) for value in values)


def _check_author(record_author_id: str, author_id: Optional[str]) -> None:
    """Reject edits from a different anonymous author when the caller identifies itself."""
    if author_id and not is_same_author(record_author_id, author_id):
        raise HTTPException(status_code=403, detail="Not the author of this item")


def _decode_upload(file_data: str, settings: Settings) -> bytes:
    try:
        data = decode_base64_payload(file_data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid file data") from e
    if is_file_too_large(len(data), settings.max_upload_mb):
        raise HTTPException(
            status_code=413,
            detail=f"File too large ({format_file_size(len(data))}, max {settings.max_upload_mb:g} MB)",
        )
    return data


def _post_response(post: PostRecord, storage: MediaStorage) -> PostResponse:
    payload = post.as_dict()
    payload["src"] = storage.resolve(post.src, post.storage_path)
    return PostResponse(**payload)


@router.get("/health", response_model=HealthResponse)
def health(
    repository: BoardRepository = Depends(get_repository),
    storage: MediaStorage = Depends(get_media_storage),
):
    return HealthResponse(status="ok", backend=repository.kind, media=storage.kind)


@router.get("/notes/{category}", response_model=list[NoteResponse])
def list_notes(category: str, repository: BoardRepository = Depends(get_repository)):
    return [NoteResponse(**note.as_dict()) for note in repository.list_notes(category)]


@router.post("/notes", response_model=NoteResponse, status_code=201)
def create_note(
    payload: NoteCreateRequest,
    repository: BoardRepository = Depends(get_repository),
):
    # An empty string is valid content; the other fields must be non-blank.
    if _missing(payload.id, payload.category, payload.author, payload.color) or payload.content is None:
        raise HTTPException(status_code=400, detail="Missing required fields")
    if _missing(payload.authorId):
        raise HTTPException(status_code=400, detail="Author ID is required")
    if repository.get_note(payload.id):
        raise HTTPException(status_code=409, detail="Note already exists")

    now = utc_now_iso()
    note = NoteRecord(
        id=payload.id,
        category=payload.category,
        x=payload.x,
        y=payload.y,
        width=payload.width,
        height=payload.height,
        content=payload.content,
        author=normalize_author_name(payload.author),
        author_id=payload.authorId,
        color=payload.color,
        post_id=payload.postId,
        created_at=now,
        updated_at=now,
    )
    repository.add_note(note)
    logger.info("Created note %s in %s", note.id, note.category)
    return NoteResponse(**note.as_dict())


@router.put("/notes/{note_id}", response_model=NoteResponse)
def update_note(
    note_id: str,
    payload: NoteUpdateRequest,
    author_id: Optional[str] = Query(None, alias="authorId"),
    repository: BoardRepository = Depends(get_repository),
):
    existing = repository.get_note(note_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Note not found")
    _check_author(existing.author_id, author_id)

    updates = payload.model_dump(exclude_none=True)
    if "author" in updates:
        updates["author"] = normalize_author_name(updates["author"])
    updated = repository.update_note(note_id, updates)
    if not updated:
        raise HTTPException(status_code=404, detail="Note not found")
    return NoteResponse(**updated.as_dict())


@router.delete("/notes/{note_id}", response_model=DeleteResponse)
def delete_note(
    note_id: str,
    author_id: Optional[str] = Query(None, alias="authorId"),
    repository: BoardRepository = Depends(get_repository),
):
    existing = repository.get_note(note_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Note not found")
    _check_author(existing.author_id, author_id)

    if not repository.delete_note(note_id):
        raise HTTPException(status_code=404, detail="Note not found")
    return DeleteResponse(message="Note deleted successfully")


@router.get("/posts/{category}", response_model=list[PostResponse])
def list_posts(
    category: str,
    repository: BoardRepository = Depends(get_repository),
    storage: MediaStorage = Depends(get_media_storage),
):
    return [_post_response(post, storage) for post in repository.list_posts(category)]


@router.post("/posts", response_model=PostResponse, status_code=201)
def create_post(
    payload: PostCreateRequest,
    repository: BoardRepository = Depends(get_repository),
    storage: MediaStorage = Depends(get_media_storage),
    settings: Settings = Depends(get_settings),
):
    if _missing(payload.title, payload.category, payload.fileData, payload.fileName):
        raise HTTPException(status_code=400, detail="Missing required fields")
    if _missing(payload.authorId):
        raise HTTPException(status_code=400, detail="Author ID is required")

    data = _decode_upload(payload.fileData, settings)
    mime_type = guess_mime_type(payload.fileName)
    logger.info(
        "Received upload %s (%s, %s)",
        payload.fileName,
        mime_type,
        format_file_size(len(data)),
    )

    if (
        settings.compress_uploaded_images
        and is_image_mime(mime_type)
        and mime_type not in SKIP_SERVER_COMPRESSION
    ):
        try:
            result = compress_image(
                data,
                max_width=settings.image_max_width,
                max_height=settings.image_max_height,
                quality=settings.image_quality,
            )
            if result.compressed_size < len(data):
                data, mime_type = result.data, result.mime_type
        except CompressionError as e:
            logger.warning("Image compression failed for %s, storing original: %s", payload.fileName, e)

    post_id = uuid.uuid4().hex
    try:
        stored = storage.store(post_id, payload.fileName, data, mime_type)
    except MediaStorageError as e:
        logger.exception("Media upload failed for post %s", post_id)
        raise HTTPException(status_code=502, detail="Failed to store media") from e

    now = utc_now_iso()
    post = PostRecord(
        id=post_id,
        title=payload.title.strip(),
        category=payload.category,
        src=stored.src,
        file_name=payload.fileName,
        author_id=payload.authorId,
        storage_path=stored.storage_path,
        created_at=now,
        updated_at=now,
    )
    try:
        repository.add_post(post)
    except RepositoryError:
        try:
            storage.delete(stored.storage_path)
        except MediaStorageError:
            logger.exception("Failed to remove media for unsaved post %s", post_id)
        raise
    logger.info("Created post %s in %s", post.id, post.category)
    return _post_response(post, storage)


@router.put("/posts/{post_id}", response_model=PostResponse)
def update_post(
    post_id: str,
    payload: PostUpdateRequest,
    author_id: Optional[str] = Query(None, alias="authorId"),
    repository: BoardRepository = Depends(get_repository),
    storage: MediaStorage = Depends(get_media_storage),
):
    if _missing(payload.title):
        raise HTTPException(status_code=400, detail="Missing required fields")
    existing = repository.get_post(post_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Post not found")
    _check_author(existing.author_id, author_id)

    updated = repository.update_post(post_id, {"title": payload.title.strip()})
    if not updated:
        raise HTTPException(status_code=404, detail="Post not found")
    return _post_response(updated, storage)


@router.delete("/posts/{post_id}", response_model=DeleteResponse)
def delete_post(
    post_id: str,
    author_id: Optional[str] = Query(None, alias="authorId"),
    repository: BoardRepository = Depends(get_repository),
    storage: MediaStorage = Depends(get_media_storage),
):
    existing = repository.get_post(post_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Post not found")
    _check_author(existing.author_id, author_id)

    if not repository.delete_post(post_id):
        raise HTTPException(status_code=404, detail="Post not found")
    try:
        storage.delete(existing.storage_path)
    except MediaStorageError:
        # The record is gone; an orphaned object is only wasted space.
        logger.exception("Failed to delete media for post %s", post_id)
    return DeleteResponse(message="Post deleted successfully")


@router.post("/compress-video", response_model=CompressVideoResponse)
def compress_video(
    payload: CompressVideoRequest,
    compressor: VideoCompressor = Depends(get_video_compressor),
    settings: Settings = Depends(get_settings),
):
    if _missing(payload.fileData, payload.fileName):
        raise HTTPException(status_code=400, detail="Missing fileData or fileName")

    data = _decode_upload(payload.fileData, settings)
    outcome = compressor.compress(data, payload.fileName)

    if outcome.success:
        compressed_data = encode_base64(outcome.data)
        message = None
    else:
        # Hand the caller's payload back untouched.
        compressed_data = payload.fileData
        message = (
            "Video compression not available"
            if not compressor.available
            else "Video compression failed, original returned"
        )

    return CompressVideoResponse(
        success=outcome.success,
        outcome=outcome.kind,
        compressedData=compressed_data,
        ratio=outcome.ratio,
        originalSize=outcome.original_size,
        compressedSize=outcome.compressed_size,
        strategy=outcome.strategy,
        message=message,
        errors=outcome.errors,
    )


@router.post("/compress-image", response_model=CompressImageResponse)
def compress_image_route(
    payload: CompressImageRequest,
    settings: Settings = Depends(get_settings),
):
    if _missing(payload.fileData, payload.fileName):
        raise HTTPException(status_code=400, detail="Missing fileData or fileName")

    data = _decode_upload(payload.fileData, settings)
    try:
        result = compress_image(
            data,
            max_width=payload.maxWidth or settings.image_max_width,
            max_height=payload.maxHeight or settings.image_max_height,
            quality=payload.quality or settings.image_quality,
        )
    except CompressionError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return CompressImageResponse(
        compressedData=encode_base64(result.data),
        mimeType=result.mime_type,
        ratio=result.ratio,
        originalSize=result.original_size,
        compressedSize=result.compressed_size,
    )
