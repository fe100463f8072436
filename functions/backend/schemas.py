"""
Pydantic schemas for the board API. Field names follow the browser
client's camelCase JSON.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: Literal["ok"]
    backend: str
    media: str


class NoteCreateRequest(BaseModel):
    # Presence is checked in the route so missing fields map to 400.
    id: Optional[str] = None
    category: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    width: Optional[float] = None
    height: Optional[float] = None
    content: Optional[str] = None
    author: Optional[str] = None
    authorId: Optional[str] = None
    color: Optional[str] = None
    postId: Optional[str] = None


class NoteUpdateRequest(BaseModel):
    content: Optional[str] = None
    author: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None
    color: Optional[str] = None


class NoteResponse(BaseModel):
    id: str
    category: str
    x: float
    y: float
    width: Optional[float] = None
    height: Optional[float] = None
    content: str
    author: str
    authorId: str
    color: str
    postId: Optional[str] = None
    createdAt: str
    updatedAt: str


class PostCreateRequest(BaseModel):
    title: Optional[str] = None
    category: Optional[str] = None
    fileData: Optional[str] = None
    fileName: Optional[str] = None
    authorId: Optional[str] = None


class PostUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)


class PostResponse(BaseModel):
    id: str
    title: str
    category: str
    src: str
    fileName: str
    authorId: str
    createdAt: str
    updatedAt: str


class DeleteResponse(BaseModel):
    message: str


class CompressVideoRequest(BaseModel):
    fileData: Optional[str] = None
    fileName: Optional[str] = None


class CompressVideoResponse(BaseModel):
    success: bool
    outcome: Literal["compressed", "passthrough"]
    compressedData: str
    ratio: float
    originalSize: int
    compressedSize: int
    strategy: Optional[str] = None
    message: Optional[str] = None
    errors: list[str] = Field(default_factory=list)


class CompressImageRequest(BaseModel):
    fileData: Optional[str] = None
    fileName: Optional[str] = None
    maxWidth: Optional[int] = Field(default=None, gt=0)
    maxHeight: Optional[int] = Field(default=None, gt=0)
    quality: Optional[float] = Field(default=None, gt=0, le=1)


class CompressImageResponse(BaseModel):
    compressedData: str
    mimeType: str
    ratio: float
    originalSize: int
    compressedSize: int
