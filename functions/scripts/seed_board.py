"""
Seed a board category with example notes.

Notes are laid out on a grid in screen pixels for a reference viewport and
converted to canvas coordinates before they are stored, so they land where
a client with that viewport would have dropped them.
"""

from __future__ import annotations

import argparse
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.db import BoardRepository, NoteRecord, utc_now_iso
from backend.dependencies import get_repository
from shared.coordinates import Viewport, clamp_zoom
from shared.identity import generate_author_id, normalize_author_name

logger = logging.getLogger(__name__)

NOTE_COLORS = ["#fff59d", "#ffccbc", "#c8e6c9", "#bbdefb", "#e1bee7"]
NOTE_WIDTH = 200
NOTE_HEIGHT = 150
GRID_GAP = 40


def build_example_notes(
    category: str,
    *,
    count: int = 6,
    columns: int = 3,
    viewport: Optional[Viewport] = None,
    screen_width: float = 1280,
    screen_height: float = 800,
    author: Optional[str] = None,
    author_id: Optional[str] = None,
) -> list[NoteRecord]:
    viewport = viewport or Viewport()
    center_x, center_y = screen_width / 2, screen_height / 2
    author_name = normalize_author_name(author)
    author_id = author_id or generate_author_id()

    notes = []
    for index in range(count):
        row, column = divmod(index, columns)
        screen_x = GRID_GAP + column * (NOTE_WIDTH + GRID_GAP)
        screen_y = GRID_GAP + row * (NOTE_HEIGHT + GRID_GAP)
        position = viewport.to_canvas(screen_x, screen_y, center_x, center_y)
        now = utc_now_iso()
        notes.append(
            NoteRecord(
                id=uuid.uuid4().hex,
                category=category,
                x=position.x,
                y=position.y,
                width=NOTE_WIDTH,
                height=NOTE_HEIGHT,
                content=f"Example note {index + 1}",
                author=author_name,
                author_id=author_id,
                color=NOTE_COLORS[index % len(NOTE_COLORS)],
                created_at=now,
                updated_at=now,
            )
        )
    return notes


def seed(repository: BoardRepository, notes: list[NoteRecord], *, dry_run: bool) -> int:
    for note in notes:
        logger.info(
            "%s note %s at (%.1f, %.1f)",
            "Would add" if dry_run else "Adding",
            note.id,
            note.x,
            note.y,
        )
        if not dry_run:
            repository.add_note(note)
    return len(notes)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed a board category with example notes")
    parser.add_argument("category", help="Board category to seed")
    parser.add_argument("--count", type=int, default=6, help="Number of notes")
    parser.add_argument("--columns", type=int, default=3, help="Notes per grid row")
    parser.add_argument("--zoom", type=float, default=1.0, help="Reference viewport zoom")
    parser.add_argument("--pan-x", type=float, default=0.0, help="Reference viewport pan (screen px)")
    parser.add_argument("--pan-y", type=float, default=0.0, help="Reference viewport pan (screen px)")
    parser.add_argument("--author", default=None, help="Display name for the notes")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the notes without saving them",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    if args.count <= 0 or args.columns <= 0:
        logger.error("--count and --columns must be positive")
        return 1

    viewport = Viewport(zoom=clamp_zoom(args.zoom), pan_x=args.pan_x, pan_y=args.pan_y)
    notes = build_example_notes(
        args.category,
        count=args.count,
        columns=args.columns,
        viewport=viewport,
        author=args.author,
    )
    total = seed(get_repository(), notes, dry_run=args.dry_run)
    logger.info("Seeded %d notes into %s", total, args.category)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
