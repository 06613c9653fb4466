"""Bookmark service: add with extraction, CRUD and tag edits."""

import logging
from typing import Iterable, List, Optional

from ..models.bookmark import Bookmark, Tag
from ..utils.url_utils import validate_absolute_url
from .extractor import ExtractionError, HTMLExtractor
from .store import BookmarkStore

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20


class BookmarkNotFoundError(Exception):
    """Bookmark not found error."""

    pass


class BookmarkValidationError(Exception):
    """Invalid bookmark input."""

    pass


class BookmarkService:
    """Orchestrates adding bookmarks and editing them through the store."""

    def __init__(self, store: BookmarkStore, extractor: HTMLExtractor):
        """Initialize bookmark service.

        Args:
            store: BookmarkStore instance
            extractor: HTMLExtractor used when a new URL is added
        """
        self.store = store
        self.extractor = extractor

    def add(self, url: str, tag_names: Optional[Iterable[str]] = None) -> Bookmark:
        """Add a URL, or return the existing bookmark for it.

        A failed extraction does not fail the add: the bookmark is stored
        with the URL as its title and empty derived fields.

        Args:
            url: Absolute URL to bookmark
            tag_names: Tag names to attach (ignored when the URL already exists)

        Returns:
            The stored Bookmark

        Raises:
            URLValidationError: If the URL is malformed
            PersistenceError: If storage fails
        """
        validate_absolute_url(url)

        existing = self.store.get_by_url(url)
        if existing is not None:
            logger.info(f"Bookmark already exists for {url} (id {existing.id})")
            return existing

        try:
            extracted = self.extractor.extract_content(url)
        except ExtractionError as e:
            logger.warning(f"Content extraction failed for {url}, creating bookmark with minimal info: {e}")
            bookmark = Bookmark.new(url, url)
        else:
            bookmark = Bookmark.new(url, extracted.title)
            bookmark.description = extracted.description
            bookmark.content = extracted.content
            bookmark.summary = self.extractor.generate_summary(extracted.content)

        for name in tag_names or []:
            if name:
                bookmark.add_tag(Tag(name=name))

        self.store.create(bookmark)

        logger.info(f"Created bookmark {bookmark.id}: {bookmark.title}")

        return bookmark

    def get(self, bookmark_id: int) -> Bookmark:
        """Get bookmark by ID.

        Raises:
            BookmarkNotFoundError: If bookmark doesn't exist
        """
        bookmark = self.store.get_by_id(bookmark_id)

        if bookmark is None:
            raise BookmarkNotFoundError(f"Bookmark not found: {bookmark_id}")

        return bookmark

    def list(self, tag: str = "", limit: int = 0, offset: int = 0) -> List[Bookmark]:
        """List bookmarks newest first, optionally filtered by exact tag name."""
        if limit <= 0:
            limit = DEFAULT_LIST_LIMIT

        return self.store.list(tag, limit, max(offset, 0))

    def update(self, bookmark: Bookmark) -> Bookmark:
        """Persist every field of a bookmark, replacing its tag set.

        Raises:
            BookmarkNotFoundError: If bookmark doesn't exist
            PersistenceError: If storage fails
        """
        if bookmark.id is None or not self.store.update(bookmark):
            raise BookmarkNotFoundError(f"Bookmark not found: {bookmark.id}")

        logger.info(f"Updated bookmark {bookmark.id}")

        return bookmark

    def delete(self, bookmark_id: int) -> None:
        """Delete a bookmark. Tags it used are kept.

        Raises:
            BookmarkNotFoundError: If bookmark doesn't exist
            PersistenceError: If storage fails
        """
        if not self.store.delete(bookmark_id):
            raise BookmarkNotFoundError(f"Bookmark not found: {bookmark_id}")

        logger.info(f"Deleted bookmark {bookmark_id}")

    def add_tag(self, bookmark_id: int, tag_name: str) -> Bookmark:
        """Attach a tag by reading the bookmark and writing back its full tag set.

        Adding a tag that is already present changes nothing but ``updated_at``.
        """
        self._validate_tag_name(tag_name)

        bookmark = self.get(bookmark_id)
        bookmark.add_tag(Tag(name=tag_name))

        return self.update(bookmark)

    def remove_tag(self, bookmark_id: int, tag_name: str) -> Bookmark:
        """Detach a tag by reading the bookmark and writing back its full tag set."""
        self._validate_tag_name(tag_name)

        bookmark = self.get(bookmark_id)
        bookmark.remove_tag(tag_name)

        return self.update(bookmark)

    def get_all_tags(self) -> List[Tag]:
        return self.store.get_all_tags()

    def _validate_tag_name(self, tag_name: str) -> None:
        if not tag_name:
            raise BookmarkValidationError("Tag name cannot be empty")
