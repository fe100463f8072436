"""
Copy every note and post from one board backend to another.

Backends are given as:
  - file:<path to board JSON>
  - database:<SQLAlchemy URL>

Records whose id already exists in the destination are skipped, so the
script can be re-run after a partial copy.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.db import BoardRepository, RepositoryError
from backend.dependencies import build_repository

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    notes_copied: int = 0
    notes_skipped: int = 0
    posts_copied: int = 0
    posts_skipped: int = 0


def open_repository(spec: str) -> BoardRepository:
    """Open a repository from `file:<path>` or `database:<url>`."""
    backend, _, target = spec.partition(":")
    if backend == "file" and target:
        return build_repository("file", data_file=target)
    if backend == "database" and target:
        return build_repository("database", database_url=target)
    raise ValueError(f"Invalid backend spec: {spec!r}")


def migrate(
    source: BoardRepository, dest: BoardRepository, *, dry_run: bool = False
) -> MigrationReport:
    report = MigrationReport()

    for note in source.list_all_notes():
        if dest.get_note(note.id):
            report.notes_skipped += 1
            continue
        if not dry_run:
            dest.add_note(note)
        report.notes_copied += 1

    for post in source.list_all_posts():
        if dest.get_post(post.id):
            report.posts_skipped += 1
            continue
        if not dry_run:
            dest.add_post(post)
        report.posts_copied += 1

    return report


def main() -> int:
    parser = argparse.ArgumentParser(description="Copy a board between backends")
    parser.add_argument("source", help="file:<path> | database:<url>")
    parser.add_argument("dest", help="file:<path> | database:<url>")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be copied without writing",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    try:
        source = open_repository(args.source)
        dest = open_repository(args.dest)
        report = migrate(source, dest, dry_run=args.dry_run)
    except (ValueError, RepositoryError) as e:
        logger.error("Migration failed: %s", e)
        return 1

    logger.info(
        "Notes: %d copied, %d skipped. Posts: %d copied, %d skipped.%s",
        report.notes_copied,
        report.notes_skipped,
        report.posts_copied,
        report.posts_skipped,
        " (dry run)" if args.dry_run else "",
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
