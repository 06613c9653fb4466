"""Full-text search index over bookmarks, derived from the store.

The index is a projection: the store is the system of record, and the
index may lag behind it between a store write and the next explicit
index call. Search tolerates that lag by dropping hits the store no
longer knows about; ``rebuild_index`` removes the drift entirely.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Union

from whoosh import index as whoosh_index
from whoosh.fields import ID, KEYWORD, TEXT, Schema
from whoosh.qparser import MultifieldParser, OrGroup

from ..models.bookmark import Bookmark, SearchDocument
from .store import BookmarkStore

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 20
DEFAULT_REBUILD_LIMIT = 1000

SEARCH_FIELDS = ["url", "title", "description", "content", "summary", "tags"]

INDEX_SCHEMA = Schema(
    id=ID(stored=True, unique=True),
    url=TEXT,
    title=TEXT,
    description=TEXT,
    content=TEXT,
    summary=TEXT,
    tags=KEYWORD(commas=True, lowercase=True, scorable=True),
)


class SearchIndexError(Exception):
    """Search index open, write or query failure."""

    pass


class BookmarkProjection(ABC):
    """A derived view of the store kept in sync by explicit calls."""

    @abstractmethod
    def index_bookmark(self, bookmark: Bookmark) -> None: ...

    @abstractmethod
    def delete_bookmark(self, bookmark_id: int) -> None: ...

    @abstractmethod
    def rebuild_index(self) -> int: ...


def _document_fields(document: SearchDocument) -> dict:
    return {
        "id": document.id,
        "url": document.url,
        "title": document.title,
        "description": document.description,
        "content": document.content,
        "summary": document.summary,
        "tags": ",".join(document.tags),
    }


class SearchIndex(BookmarkProjection):
    """Directory-based persistent inverted index of bookmark documents."""

    def __init__(
        self,
        store: BookmarkStore,
        index_path: Union[str, Path],
        default_limit: int = DEFAULT_SEARCH_LIMIT,
        rebuild_limit: int = DEFAULT_REBUILD_LIMIT,
    ):
        """Initialize search index and open (or create) it on disk.

        Args:
            store: Store used to resolve hits and to rebuild
            index_path: Index directory; created with default settings if absent
            default_limit: Hits returned when a search asks for limit <= 0
            rebuild_limit: Most bookmarks loaded by a rebuild

        Raises:
            SearchIndexError: If the index cannot be opened or created
        """
        self.store = store
        self.index_path = Path(index_path)
        self.default_limit = default_limit
        self.rebuild_limit = rebuild_limit
        self._index = self._open_or_create()

    def _open_or_create(self):
        try:
            if whoosh_index.exists_in(str(self.index_path)):
                ix = whoosh_index.open_dir(str(self.index_path))
                logger.info(f"Opened existing search index at {self.index_path}")
                return ix

            return self._create()
        except SearchIndexError:
            raise
        except Exception as e:
            raise SearchIndexError(f"Failed to open search index: {e}") from e

    def _create(self):
        try:
            self.index_path.mkdir(parents=True, exist_ok=True)
            ix = whoosh_index.create_in(str(self.index_path), INDEX_SCHEMA)
        except Exception as e:
            raise SearchIndexError(f"Failed to create search index: {e}") from e

        logger.info(f"Created new search index at {self.index_path}")
        return ix

    def close(self) -> None:
        if self._index is not None:
            self._index.close()
            self._index = None

    def __enter__(self) -> "SearchIndex":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def index(self):
        if self._index is None:
            raise SearchIndexError("Search index is closed")
        return self._index

    def index_bookmark(self, bookmark: Bookmark) -> None:
        """Upsert the search document for a stored bookmark.

        Raises:
            SearchIndexError: If the document cannot be written
        """
        document = SearchDocument.from_bookmark(bookmark)

        try:
            writer = self.index.writer()
            try:
                writer.update_document(**_document_fields(document))
            except Exception:
                writer.cancel()
                raise
            writer.commit()
        except SearchIndexError:
            raise
        except Exception as e:
            raise SearchIndexError(f"Failed to index bookmark {document.id}: {e}") from e

        logger.debug(f"Indexed bookmark {document.id}")

    def delete_bookmark(self, bookmark_id: int) -> None:
        """Remove a bookmark's document; no-op if it is not indexed.

        Raises:
            SearchIndexError: If the index cannot be written
        """
        try:
            writer = self.index.writer()
            try:
                writer.delete_by_term("id", str(bookmark_id))
            except Exception:
                writer.cancel()
                raise
            writer.commit()
        except SearchIndexError:
            raise
        except Exception as e:
            raise SearchIndexError(f"Failed to delete bookmark {bookmark_id} from index: {e}") from e

        logger.debug(f"Removed bookmark {bookmark_id} from index")

    def search(self, query: str, limit: int = 0) -> List[Bookmark]:
        """Ranked free-text search across all indexed fields.

        Hits are re-read from the store; hits with a bad id or whose
        bookmark is gone are skipped.

        Raises:
            SearchIndexError: If the query cannot be run
            PersistenceError: If the store fails while resolving hits
        """
        if limit <= 0:
            limit = self.default_limit

        if not query or not query.strip():
            return []

        hit_ids = self._search_ids(query, limit)

        bookmarks = []
        for doc_id in hit_ids:
            try:
                bookmark_id = int(doc_id)
            except (TypeError, ValueError):
                logger.warning(f"Invalid bookmark id in search result: {doc_id!r}")
                continue

            bookmark = self.store.get_by_id(bookmark_id)
            if bookmark is None:
                logger.debug(f"Skipping stale search hit for bookmark {bookmark_id}")
                continue

            bookmarks.append(bookmark)

        return bookmarks

    def _search_ids(self, query: str, limit: int) -> List[Optional[str]]:
        try:
            parser = MultifieldParser(SEARCH_FIELDS, schema=self.index.schema, group=OrGroup)
            parsed = parser.parse(query)

            with self.index.searcher() as searcher:
                results = searcher.search(parsed, limit=limit)
                return [hit.get("id") for hit in results]
        except SearchIndexError:
            raise
        except Exception as e:
            raise SearchIndexError(f"Search failed: {e}") from e

    def rebuild_index(self) -> int:
        """Recreate the index from the store's current contents.

        Loads up to ``rebuild_limit`` bookmarks, recreates the index
        directory and writes all documents in one batch.

        Returns:
            Number of documents indexed

        Raises:
            PersistenceError: If bookmarks cannot be loaded (index untouched)
            SearchIndexError: If the index cannot be recreated or written
        """
        bookmarks = self.store.list("", self.rebuild_limit, 0)

        self.close()
        self._index = self._create()

        try:
            writer = self.index.writer()
            try:
                for bookmark in bookmarks:
                    writer.add_document(**_document_fields(SearchDocument.from_bookmark(bookmark)))
            except Exception:
                writer.cancel()
                raise
            writer.commit()
        except Exception as e:
            raise SearchIndexError(f"Failed to execute batch: {e}") from e

        logger.info(f"Search index rebuilt with {len(bookmarks)} bookmarks")

        return len(bookmarks)

    def document_count(self) -> int:
        try:
            return self.index.doc_count()
        except SearchIndexError:
            raise
        except Exception as e:
            raise SearchIndexError(f"Failed to count documents: {e}") from e
