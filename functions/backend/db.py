"""
Board repository: one interface over notes and posts with in-memory,
JSON-file and SQL (SQLAlchemy) implementations.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import Column, Float, String, Text, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

BOARD_FILE_VERSION = "2.0"

NOTE_UPDATABLE_FIELDS = ("content", "author", "width", "height", "x", "y", "color")
POST_UPDATABLE_FIELDS = ("title",)


class RepositoryError(Exception):
    """Raised when the backing store fails."""


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2025-01-01T00:00:00.000Z."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


@dataclass
class NoteRecord:
    id: str
    category: str
    content: str
    author: str
    author_id: str
    color: str
    x: float = 0.0
    y: float = 0.0
    width: Optional[float] = None
    height: Optional[float] = None
    post_id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "content": self.content,
            "author": self.author,
            "authorId": self.author_id,
            "color": self.color,
            "postId": self.post_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NoteRecord":
        return cls(
            id=data["id"],
            category=data["category"],
            content=data.get("content", ""),
            author=data.get("author", ""),
            author_id=data.get("authorId", ""),
            color=data.get("color", ""),
            x=data.get("x") or 0.0,
            y=data.get("y") or 0.0,
            width=data.get("width"),
            height=data.get("height"),
            post_id=data.get("postId"),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


@dataclass
class PostRecord:
    id: str
    title: str
    category: str
    src: str
    file_name: str
    author_id: str
    # Object-storage key when the media lives outside the record.
    storage_path: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "src": self.src,
            "fileName": self.file_name,
            "authorId": self.author_id,
            "storagePath": self.storage_path,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PostRecord":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            category=data["category"],
            src=data.get("src", ""),
            file_name=data.get("fileName", ""),
            author_id=data.get("authorId", ""),
            storage_path=data.get("storagePath"),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


def _filter_updates(updates: dict, allowed: tuple[str, ...]) -> dict:
    return {key: value for key, value in updates.items() if key in allowed}


def _newest_first(records: list) -> list:
    return sorted(records, key=lambda record: record.created_at, reverse=True)


class BoardRepository(Protocol):
    """Interface for board storage."""

    kind: str

    def list_notes(self, category: str) -> list[NoteRecord]:
        ...

    def get_note(self, note_id: str) -> Optional[NoteRecord]:
        ...

    def add_note(self, note: NoteRecord) -> NoteRecord:
        ...

    def update_note(self, note_id: str, updates: dict) -> Optional[NoteRecord]:
        ...

    def delete_note(self, note_id: str) -> bool:
        ...

    def list_all_notes(self) -> list[NoteRecord]:
        ...

    def list_posts(self, category: str) -> list[PostRecord]:
        ...

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        ...

    def add_post(self, post: PostRecord) -> PostRecord:
        ...

    def update_post(self, post_id: str, updates: dict) -> Optional[PostRecord]:
        ...

    def delete_post(self, post_id: str) -> bool:
        ...

    def list_all_posts(self) -> list[PostRecord]:
        ...


def _apply_updates(record, updates: dict, allowed: tuple[str, ...]):
    for key, value in _filter_updates(updates, allowed).items():
        setattr(record, key, value)
    record.updated_at = utc_now_iso()
    return record


class InMemoryBoardRepository:
    """Simple in-memory store for development and tests."""

    kind = "memory"

    def __init__(self):
        self.notes: Dict[str, NoteRecord] = {}
        self.posts: Dict[str, PostRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.notes.clear()
        self.posts.clear()

    def list_notes(self, category: str) -> list[NoteRecord]:
        return _newest_first(
            [copy.copy(n) for n in self.notes.values() if n.category == category]
        )

    def get_note(self, note_id: str) -> Optional[NoteRecord]:
        note = self.notes.get(note_id)
        return copy.copy(note) if note else None

    def add_note(self, note: NoteRecord) -> NoteRecord:
        self.notes[note.id] = copy.copy(note)
        return note

    def update_note(self, note_id: str, updates: dict) -> Optional[NoteRecord]:
        note = self.notes.get(note_id)
        if not note:
            return None
        return copy.copy(_apply_updates(note, updates, NOTE_UPDATABLE_FIELDS))

    def delete_note(self, note_id: str) -> bool:
        return self.notes.pop(note_id, None) is not None

    def list_all_notes(self) -> list[NoteRecord]:
        return [copy.copy(n) for n in self.notes.values()]

    def list_posts(self, category: str) -> list[PostRecord]:
        return _newest_first(
            [copy.copy(p) for p in self.posts.values() if p.category == category]
        )

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        post = self.posts.get(post_id)
        return copy.copy(post) if post else None

    def add_post(self, post: PostRecord) -> PostRecord:
        self.posts[post.id] = copy.copy(post)
        return post

    def update_post(self, post_id: str, updates: dict) -> Optional[PostRecord]:
        post = self.posts.get(post_id)
        if not post:
            return None
        return copy.copy(_apply_updates(post, updates, POST_UPDATABLE_FIELDS))

    def delete_post(self, post_id: str) -> bool:
        return self.posts.pop(post_id, None) is not None

    def list_all_posts(self) -> list[PostRecord]:
        return [copy.copy(p) for p in self.posts.values()]


class JsonFileBoardRepository:
    """
    Stores the whole board in one JSON document:
    {"notes": [...], "posts": [...], "version": "2.0"}.

    Every operation re-reads the file, and writes replace it atomically.
    The lock only serialises writers inside this process.
    """

    kind = "file"

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> dict:
        if not os.path.exists(self.path):
            return {"notes": [], "posts": [], "version": BOARD_FILE_VERSION}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise RepositoryError(f"Could not read board file {self.path}: {e}") from e
        data.setdefault("notes", [])
        data.setdefault("posts", [])
        data.setdefault("version", BOARD_FILE_VERSION)
        return data

    def _save(self, data: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        except OSError as e:
            raise RepositoryError(f"Could not write board file {self.path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(temp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            raise RepositoryError(f"Could not write board file {self.path}: {e}") from e
        finally:
            # Only left behind when the replace above did not happen.
            if os.path.exists(temp_path):
                os.remove(temp_path)

    def _notes(self, data: dict) -> list[NoteRecord]:
        return [NoteRecord.from_dict(item) for item in data["notes"]]

    def _posts(self, data: dict) -> list[PostRecord]:
        return [PostRecord.from_dict(item) for item in data["posts"]]

    def list_notes(self, category: str) -> list[NoteRecord]:
        notes = self._notes(self._load())
        return _newest_first([n for n in notes if n.category == category])

    def get_note(self, note_id: str) -> Optional[NoteRecord]:
        for note in self._notes(self._load()):
            if note.id == note_id:
                return note
        return None

    def add_note(self, note: NoteRecord) -> NoteRecord:
        with self._lock:
            data = self._load()
            data["notes"].append(note.as_dict())
            self._save(data)
        return note

    def update_note(self, note_id: str, updates: dict) -> Optional[NoteRecord]:
        with self._lock:
            data = self._load()
            for index, item in enumerate(data["notes"]):
                if item.get("id") == note_id:
                    note = _apply_updates(
                        NoteRecord.from_dict(item), updates, NOTE_UPDATABLE_FIELDS
                    )
                    data["notes"][index] = note.as_dict()
                    self._save(data)
                    return note
        return None

    def delete_note(self, note_id: str) -> bool:
        with self._lock:
            data = self._load()
            remaining = [n for n in data["notes"] if n.get("id") != note_id]
            if len(remaining) == len(data["notes"]):
                return False
            data["notes"] = remaining
            self._save(data)
        return True

    def list_all_notes(self) -> list[NoteRecord]:
        return self._notes(self._load())

    def list_posts(self, category: str) -> list[PostRecord]:
        posts = self._posts(self._load())
        return _newest_first([p for p in posts if p.category == category])

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        for post in self._posts(self._load()):
            if post.id == post_id:
                return post
        return None

    def add_post(self, post: PostRecord) -> PostRecord:
        with self._lock:
            data = self._load()
            data["posts"].append(post.as_dict())
            self._save(data)
        return post

    def update_post(self, post_id: str, updates: dict) -> Optional[PostRecord]:
        with self._lock:
            data = self._load()
            for index, item in enumerate(data["posts"]):
                if item.get("id") == post_id:
                    post = _apply_updates(
                        PostRecord.from_dict(item), updates, POST_UPDATABLE_FIELDS
                    )
                    data["posts"][index] = post.as_dict()
                    self._save(data)
                    return post
        return None

    def delete_post(self, post_id: str) -> bool:
        with self._lock:
            data = self._load()
            remaining = [p for p in data["posts"] if p.get("id") != post_id]
            if len(remaining) == len(data["posts"]):
                return False
            data["posts"] = remaining
            self._save(data)
        return True

    def list_all_posts(self) -> list[PostRecord]:
        return self._posts(self._load())


class SqlBoardRepository:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    kind = "database"

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlBoardRepository")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _to_note(row: "NoteRow") -> NoteRecord:
        return NoteRecord(
            id=row.id,
            category=row.category,
            content=row.content,
            author=row.author,
            author_id=row.author_id,
            color=row.color,
            x=row.x,
            y=row.y,
            width=row.width,
            height=row.height,
            post_id=row.post_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_post(row: "PostRow") -> PostRecord:
        return PostRecord(
            id=row.id,
            title=row.title,
            category=row.category,
            src=row.src,
            file_name=row.file_name,
            author_id=row.author_id,
            storage_path=row.storage_path,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _list(self, row_type, converter, category: Optional[str] = None) -> list:
        try:
            with self.Session() as session:
                stmt = select(row_type)
                if category is not None:
                    stmt = stmt.where(row_type.category == category).order_by(
                        row_type.created_at.desc()
                    )
                return [converter(row) for row in session.execute(stmt).scalars()]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list {row_type.__tablename__}: {e}") from e

    def _get(self, row_type, converter, record_id: str):
        try:
            with self.Session() as session:
                row = session.get(row_type, record_id)
                return converter(row) if row else None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to read {row_type.__tablename__}: {e}") from e

    def _add(self, row: "Base") -> None:
        try:
            with self.Session() as session:
                session.add(row)
                session.commit()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to insert into {row.__tablename__}: {e}") from e

    def _update(self, row_type, converter, record_id: str, updates: dict, allowed):
        try:
            with self.Session() as session:
                row = session.get(row_type, record_id)
                if not row:
                    return None
                for key, value in _filter_updates(updates, allowed).items():
                    setattr(row, key, value)
                row.updated_at = utc_now_iso()
                session.commit()
                session.refresh(row)
                return converter(row)
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to update {row_type.__tablename__}: {e}") from e

    def _delete(self, row_type, record_id: str) -> bool:
        try:
            with self.Session() as session:
                row = session.get(row_type, record_id)
                if not row:
                    return False
                session.delete(row)
                session.commit()
                return True
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to delete from {row_type.__tablename__}: {e}") from e

    def list_notes(self, category: str) -> list[NoteRecord]:
        return self._list(NoteRow, self._to_note, category)

    def get_note(self, note_id: str) -> Optional[NoteRecord]:
        return self._get(NoteRow, self._to_note, note_id)

    def add_note(self, note: NoteRecord) -> NoteRecord:
        self._add(
            NoteRow(**{f.name: getattr(note, f.name) for f in fields(NoteRecord)})
        )
        return note

    def update_note(self, note_id: str, updates: dict) -> Optional[NoteRecord]:
        return self._update(
            NoteRow, self._to_note, note_id, updates, NOTE_UPDATABLE_FIELDS
        )

    def delete_note(self, note_id: str) -> bool:
        return self._delete(NoteRow, note_id)

    def list_all_notes(self) -> list[NoteRecord]:
        return self._list(NoteRow, self._to_note)

    def list_posts(self, category: str) -> list[PostRecord]:
        return self._list(PostRow, self._to_post, category)

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        return self._get(PostRow, self._to_post, post_id)

    def add_post(self, post: PostRecord) -> PostRecord:
        self._add(
            PostRow(**{f.name: getattr(post, f.name) for f in fields(PostRecord)})
        )
        return post

    def update_post(self, post_id: str, updates: dict) -> Optional[PostRecord]:
        return self._update(
            PostRow, self._to_post, post_id, updates, POST_UPDATABLE_FIELDS
        )

    def delete_post(self, post_id: str) -> bool:
        return self._delete(PostRow, post_id)

    def list_all_posts(self) -> list[PostRecord]:
        return self._list(PostRow, self._to_post)


Base = declarative_base()


class NoteRow(Base):
    __tablename__ = "notes"

    id = Column(String, primary_key=True)
    category = Column(String, nullable=False, index=True)
    x = Column(Float, nullable=False, default=0.0)
    y = Column(Float, nullable=False, default=0.0)
    width = Column(Float, nullable=True)
    height = Column(Float, nullable=True)
    content = Column(Text, nullable=False, default="")
    author = Column(String, nullable=False)
    author_id = Column(String, nullable=False, index=True)
    color = Column(String, nullable=False)
    post_id = Column(String, nullable=True, index=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class PostRow(Base):
    __tablename__ = "posts"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    category = Column(String, nullable=False, index=True)
    src = Column(Text, nullable=False)
    file_name = Column(String, nullable=False)
    author_id = Column(String, nullable=False, index=True)
    storage_path = Column(String, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)
