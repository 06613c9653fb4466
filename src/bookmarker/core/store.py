"""SQLite-backed bookmark and tag store."""

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from ..models.bookmark import Bookmark, Tag, utc_now

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS bookmarks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT UNIQUE NOT NULL,
    title TEXT,
    description TEXT,
    content TEXT,
    summary TEXT,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL
);

CREATE TABLE IF NOT EXISTS bookmark_tags (
    bookmark_id INTEGER,
    tag_id INTEGER,
    PRIMARY KEY (bookmark_id, tag_id),
    FOREIGN KEY (bookmark_id) REFERENCES bookmarks(id) ON DELETE CASCADE,
    FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE
);

-- Not used by any operation; kept so existing databases keep the same schema.
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT UNIQUE NOT NULL,
    password TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_bookmarks_created ON bookmarks(created_at);
"""

BOOKMARK_COLUMNS = "b.id, b.url, b.title, b.description, b.content, b.summary, b.created_at, b.updated_at"


class PersistenceError(Exception):
    """Storage-related error."""

    pass


def _to_db_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _assign_tag_ids(tags: List[Tag], tag_ids: List[int]) -> None:
    for tag, tag_id in zip(tags, tag_ids):
        tag.id = tag_id


class BookmarkStore:
    """Persists bookmarks, tags and their many-to-many associations.

    Create and Update run inside a single transaction so the scalar fields
    and the tag associations of a bookmark always come from the same write.
    """

    def __init__(self, db_path: Union[str, Path]):
        """Open (and if needed create) the database.

        Args:
            db_path: Path to the SQLite file, or ":memory:"

        Raises:
            PersistenceError: If the database cannot be opened or initialized
        """
        self.db_path = str(db_path)

        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._init_schema()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Failed to open database {self.db_path}: {e}") from e

    def _init_schema(self) -> None:
        with self._conn:
            self._conn.executescript(SCHEMA)

        logger.info(f"Database schema initialized at {self.db_path}")

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "BookmarkStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def create(self, bookmark: Bookmark) -> Bookmark:
        """Insert a bookmark and its tags in one transaction.

        Assigns ``bookmark.id`` and the ids of its tags.

        Raises:
            PersistenceError: If any step fails; nothing is written in that case
        """
        try:
            with self._conn:
                cursor = self._conn.execute(
                    """
                    INSERT INTO bookmarks (url, title, description, content, summary, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        bookmark.url,
                        bookmark.title,
                        bookmark.description,
                        bookmark.content,
                        bookmark.summary,
                        _to_db_time(bookmark.created_at),
                        _to_db_time(bookmark.updated_at),
                    ),
                )
                bookmark_id = cursor.lastrowid
                tag_ids = self._insert_tag_links(bookmark_id, bookmark.tags)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to create bookmark {bookmark.url}: {e}") from e

        bookmark.id = bookmark_id
        _assign_tag_ids(bookmark.tags, tag_ids)
        logger.debug(f"Created bookmark {bookmark_id}: {bookmark.url}")

        return bookmark

    def _insert_tag_links(self, bookmark_id: int, tags: List[Tag]) -> List[int]:
        """Reuse or create each tag by name, then link it. Caller owns the transaction.

        Returns the tag ids in the order of ``tags``; the caller assigns them
        only once the transaction has committed.
        """
        tag_ids = []
        for tag in tags:
            self._conn.execute("INSERT OR IGNORE INTO tags (name) VALUES (?)", (tag.name,))
            row = self._conn.execute("SELECT id FROM tags WHERE name = ?", (tag.name,)).fetchone()
            if row is None:
                raise PersistenceError(f"Failed to insert tag {tag.name!r}")
            tag_ids.append(row["id"])

            self._conn.execute(
                "INSERT OR IGNORE INTO bookmark_tags (bookmark_id, tag_id) VALUES (?, ?)",
                (bookmark_id, row["id"]),
            )

        return tag_ids

    def get_by_id(self, bookmark_id: int) -> Optional[Bookmark]:
        """Get a bookmark with its tags, or None if it does not exist.

        Raises:
            PersistenceError: On database failure
        """
        return self._get_one(f"SELECT {BOOKMARK_COLUMNS} FROM bookmarks b WHERE b.id = ?", bookmark_id)

    def get_by_url(self, url: str) -> Optional[Bookmark]:
        """Get a bookmark by exact URL, or None if it does not exist.

        Raises:
            PersistenceError: On database failure
        """
        return self._get_one(f"SELECT {BOOKMARK_COLUMNS} FROM bookmarks b WHERE b.url = ?", url)

    def _get_one(self, query: str, value) -> Optional[Bookmark]:
        try:
            row = self._conn.execute(query, (value,)).fetchone()
            if row is None:
                return None

            bookmark = self._row_to_bookmark(row)
            bookmark.tags = self._get_tags(bookmark.id)
            return bookmark
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to get bookmark: {e}") from e

    def list(self, tag: str = "", limit: int = 20, offset: int = 0) -> List[Bookmark]:
        """List bookmarks newest first, optionally only those with an exact tag name.

        Pagination applies to bookmarks; tags are attached afterwards.

        Raises:
            PersistenceError: On database failure
        """
        if tag:
            query = f"""
                SELECT {BOOKMARK_COLUMNS}
                FROM bookmarks b
                JOIN bookmark_tags bt ON bt.bookmark_id = b.id
                JOIN tags t ON t.id = bt.tag_id
                WHERE t.name = ?
                ORDER BY b.created_at DESC, b.id DESC
                LIMIT ? OFFSET ?
            """
            params = (tag, limit, offset)
        else:
            query = f"""
                SELECT {BOOKMARK_COLUMNS}
                FROM bookmarks b
                ORDER BY b.created_at DESC, b.id DESC
                LIMIT ? OFFSET ?
            """
            params = (limit, offset)

        try:
            rows = self._conn.execute(query, params).fetchall()
            bookmarks = [self._row_to_bookmark(row) for row in rows]

            for bookmark in bookmarks:
                bookmark.tags = self._get_tags(bookmark.id)

            return bookmarks
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list bookmarks: {e}") from e

    def update(self, bookmark: Bookmark) -> bool:
        """Overwrite a bookmark and replace its whole tag-association set.

        Sets ``updated_at`` to now. Returns False if no bookmark has this id.

        Raises:
            PersistenceError: If any step fails; nothing is written in that case
        """
        if bookmark.id is None:
            raise PersistenceError("Cannot update a bookmark without an id")

        updated_at = utc_now()

        try:
            with self._conn:
                cursor = self._conn.execute(
                    """
                    UPDATE bookmarks
                    SET url = ?, title = ?, description = ?, content = ?, summary = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        bookmark.url,
                        bookmark.title,
                        bookmark.description,
                        bookmark.content,
                        bookmark.summary,
                        _to_db_time(updated_at),
                        bookmark.id,
                    ),
                )
                if cursor.rowcount == 0:
                    return False

                self._conn.execute("DELETE FROM bookmark_tags WHERE bookmark_id = ?", (bookmark.id,))
                tag_ids = self._insert_tag_links(bookmark.id, bookmark.tags)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to update bookmark {bookmark.id}: {e}") from e

        bookmark.updated_at = updated_at
        _assign_tag_ids(bookmark.tags, tag_ids)
        logger.debug(f"Updated bookmark {bookmark.id}")

        return True

    def delete(self, bookmark_id: int) -> bool:
        """Delete a bookmark; its tag links cascade, tag rows are kept.

        Returns False if no bookmark has this id.

        Raises:
            PersistenceError: On database failure
        """
        try:
            with self._conn:
                cursor = self._conn.execute("DELETE FROM bookmarks WHERE id = ?", (bookmark_id,))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete bookmark {bookmark_id}: {e}") from e

        deleted = cursor.rowcount > 0
        if deleted:
            logger.debug(f"Deleted bookmark {bookmark_id}")

        return deleted

    def get_all_tags(self) -> List[Tag]:
        """Every tag, ordered by name.

        Raises:
            PersistenceError: On database failure
        """
        try:
            rows = self._conn.execute("SELECT id, name FROM tags ORDER BY name").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to get tags: {e}") from e

        return [Tag(id=row["id"], name=row["name"]) for row in rows]

    def count(self) -> int:
        try:
            return self._conn.execute("SELECT COUNT(*) FROM bookmarks").fetchone()[0]
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to count bookmarks: {e}") from e

    def _get_tags(self, bookmark_id: int) -> List[Tag]:
        rows = self._conn.execute(
            """
            SELECT t.id, t.name
            FROM tags t
            JOIN bookmark_tags bt ON bt.tag_id = t.id
            WHERE bt.bookmark_id = ?
            ORDER BY t.name
            """,
            (bookmark_id,),
        ).fetchall()
        return [Tag(id=row["id"], name=row["name"]) for row in rows]

    def _row_to_bookmark(self, row: sqlite3.Row) -> Bookmark:
        return Bookmark(
            id=row["id"],
            url=row["url"],
            title=row["title"] or "",
            description=row["description"] or "",
            content=row["content"] or "",
            summary=row["summary"] or "",
            created_at=_from_db_time(row["created_at"]),
            updated_at=_from_db_time(row["updated_at"]),
        )
