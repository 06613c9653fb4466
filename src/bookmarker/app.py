"""Application wiring: builds the services from configuration."""

import logging
from typing import Optional

from .config import ConfigManager
from .core.bookmark_service import BookmarkService
from .core.extractor import HTMLExtractor
from .core.search_index import SearchIndex
from .core.store import BookmarkStore
from .models.config import AppConfig

logger = logging.getLogger(__name__)


class BookmarkApp:
    """Owns the store, extractor, bookmark service and search index."""

    def __init__(self, config: AppConfig, config_manager: Optional[ConfigManager] = None):
        """Open the database and the search index described by the config.

        Raises:
            ConfigError: If the data directory is unusable
            PersistenceError: If the database cannot be opened
            SearchIndexError: If the index cannot be opened
        """
        self.config = config
        self.config_manager = config_manager or ConfigManager()

        self.config_manager.ensure_data_dir(config)

        self.store = BookmarkStore(self.config_manager.get_database_path(config))
        self.extractor = HTMLExtractor(
            timeout=config.fetch_timeout,
            max_response_bytes=config.max_response_bytes,
            user_agent=config.user_agent,
        )
        self.bookmarks = BookmarkService(self.store, self.extractor)

        try:
            self.search = SearchIndex(
                self.store,
                self.config_manager.get_index_path(config),
                default_limit=config.search_default_limit,
                rebuild_limit=config.rebuild_limit,
            )
        except Exception:
            self.store.close()
            raise

        logger.info("Bookmark manager started")

    @classmethod
    def from_config_manager(cls, config_manager: ConfigManager) -> "BookmarkApp":
        return cls(config_manager.load(), config_manager)

    def close(self) -> None:
        logger.info("Shutting down bookmark manager")
        try:
            self.search.close()
        finally:
            self.store.close()

    def __enter__(self) -> "BookmarkApp":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
