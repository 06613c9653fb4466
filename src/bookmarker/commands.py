"""Command layer: explicit commands dispatched against the core services.

Interface state lives in ``AppState`` and is only touched here; the
services never see it. Every user action is a ``Command`` processed by a
single control loop, which may queue follow-up commands (for example a
refreshed list after a delete).
"""

import logging
import shlex
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import click

from .core import fuzzy
from .core.bookmark_service import BookmarkNotFoundError, BookmarkService, BookmarkValidationError
from .core.search_index import SearchIndex, SearchIndexError
from .core.store import PersistenceError
from .models.bookmark import Bookmark, Tag
from .utils.url_utils import URLValidationError

logger = logging.getLogger(__name__)


class CommandKind(str, Enum):
    LIST = "list"
    SEARCH = "search"
    ADD = "add"
    VIEW = "view"
    OPEN = "open"
    DELETE = "delete"
    TAG = "tag"
    UNTAG = "untag"
    TAGS = "tags"
    REINDEX = "reindex"


class SearchMode(str, Enum):
    FULLTEXT = "fulltext"
    FUZZY = "fuzzy"


class CommandParseError(ValueError):
    """Shell input that does not form a valid command."""

    pass


@dataclass(frozen=True)
class Command:
    """A single user action and its arguments."""

    kind: CommandKind
    bookmark_id: Optional[int] = None
    url: str = ""
    tags: Tuple[str, ...] = ()
    tag: str = ""
    query: str = ""
    mode: SearchMode = SearchMode.FULLTEXT
    limit: int = 0
    offset: int = 0


@dataclass
class AppState:
    """What the interface is currently showing."""

    bookmarks: List[Bookmark] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)
    tag_filter: str = ""
    selected: Optional[Bookmark] = None
    status: str = "Ready"
    status_level: str = "info"


@dataclass
class CommandResult:
    command: Command
    ok: bool = True
    message: str = ""
    level: str = "success"
    bookmarks: List[Bookmark] = field(default_factory=list)
    bookmark: Optional[Bookmark] = None
    tags: List[Tag] = field(default_factory=list)
    count: int = 0
    follow_up: Optional[Command] = None


class CommandController:
    """Runs commands one at a time and keeps AppState current."""

    def __init__(
        self,
        bookmarks: BookmarkService,
        search: SearchIndex,
        state: Optional[AppState] = None,
        list_limit: int = 100,
        fuzzy_candidate_limit: int = 1000,
    ):
        self.bookmarks = bookmarks
        self.search = search
        self.state = state or AppState()
        self.list_limit = list_limit
        self.fuzzy_candidate_limit = fuzzy_candidate_limit

        self._handlers: Dict[CommandKind, Callable[[Command], CommandResult]] = {
            CommandKind.LIST: self._list,
            CommandKind.SEARCH: self._search,
            CommandKind.ADD: self._add,
            CommandKind.VIEW: self._view,
            CommandKind.OPEN: self._open,
            CommandKind.DELETE: self._delete,
            CommandKind.TAG: self._tag,
            CommandKind.UNTAG: self._untag,
            CommandKind.TAGS: self._tags,
            CommandKind.REINDEX: self._reindex,
        }

    def dispatch(self, command: Command) -> CommandResult:
        """Execute one command; domain errors become a failed result."""
        handler = self._handlers[command.kind]

        try:
            result = handler(command)
        except (URLValidationError, BookmarkValidationError) as e:
            result = CommandResult(command, ok=False, message=f"Invalid input: {e}", level="error")
        except BookmarkNotFoundError as e:
            result = CommandResult(command, ok=False, message=str(e), level="error")
        except PersistenceError as e:
            logger.error(f"Storage error during {command.kind.value}: {e}")
            result = CommandResult(command, ok=False, message=f"Storage error: {e}", level="error")
        except SearchIndexError as e:
            logger.error(f"Search index error during {command.kind.value}: {e}")
            result = CommandResult(command, ok=False, message=f"Search index error: {e}", level="error")

        self.state.status = result.message
        self.state.status_level = result.level

        return result

    def run(self, commands: Iterable[Command]) -> List[CommandResult]:
        """Control loop: drain the queue, appending follow-ups as they appear."""
        queue = deque(commands)
        results = []

        while queue:
            result = self.dispatch(queue.popleft())
            results.append(result)
            if result.follow_up is not None:
                queue.append(result.follow_up)

        return results

    def _list(self, command: Command) -> CommandResult:
        limit = command.limit if command.limit > 0 else self.list_limit
        bookmarks = self.bookmarks.list(command.tag, limit, command.offset)

        self.state.bookmarks = bookmarks
        self.state.tag_filter = command.tag

        return CommandResult(
            command,
            message=f"Loaded {len(bookmarks)} bookmarks",
            bookmarks=bookmarks,
            count=len(bookmarks),
        )

    def _search(self, command: Command) -> CommandResult:
        query = command.query.strip()
        if not query:
            return CommandResult(
                command, ok=False, message="Please enter a search query", level="warning"
            )

        if command.mode == SearchMode.FUZZY:
            candidates = self.bookmarks.list("", self.fuzzy_candidate_limit, 0)
            bookmarks = fuzzy.find_bookmarks(query, candidates)
            if command.limit > 0:
                bookmarks = bookmarks[:command.limit]
        else:
            bookmarks = self.search.search(query, command.limit)

        self.state.bookmarks = bookmarks

        return CommandResult(
            command,
            message=f"Found {len(bookmarks)} results",
            bookmarks=bookmarks,
            count=len(bookmarks),
        )

    def _add(self, command: Command) -> CommandResult:
        if not command.url:
            return CommandResult(command, ok=False, message="Please enter a URL", level="warning")

        bookmark = self.bookmarks.add(command.url, list(command.tags))
        self.state.selected = bookmark

        try:
            self.search.index_bookmark(bookmark)
        except SearchIndexError as e:
            logger.warning(f"Bookmark {bookmark.id} stored but not indexed: {e}")
            return CommandResult(
                command,
                message=f"Bookmark added but indexing failed: {e}",
                level="warning",
                bookmark=bookmark,
            )

        return CommandResult(command, message=f"Added bookmark: {bookmark.title}", bookmark=bookmark)

    def _view(self, command: Command) -> CommandResult:
        bookmark = self.bookmarks.get(self._require_id(command))
        self.state.selected = bookmark

        return CommandResult(command, message=f"Viewing bookmark {bookmark.id}", bookmark=bookmark)

    def _open(self, command: Command) -> CommandResult:
        bookmark = self.bookmarks.get(self._require_id(command))
        self.state.selected = bookmark

        # Hands the URL to the desktop's default handler without waiting for it.
        if click.launch(bookmark.url) != 0:
            logger.warning(f"Launcher reported failure opening {bookmark.url}")
            return CommandResult(
                command,
                message=f"Could not open URL: {bookmark.url}",
                level="warning",
                bookmark=bookmark,
            )

        return CommandResult(command, message=f"Opening URL: {bookmark.url}", bookmark=bookmark)

    def _delete(self, command: Command) -> CommandResult:
        bookmark_id = self._require_id(command)
        self.bookmarks.delete(bookmark_id)

        if self.state.selected is not None and self.state.selected.id == bookmark_id:
            self.state.selected = None

        follow_up = Command(CommandKind.LIST, tag=self.state.tag_filter)

        try:
            self.search.delete_bookmark(bookmark_id)
        except SearchIndexError as e:
            logger.warning(f"Bookmark {bookmark_id} deleted but still indexed: {e}")
            return CommandResult(
                command,
                message=f"Bookmark deleted but index update failed: {e}",
                level="warning",
                follow_up=follow_up,
            )

        return CommandResult(command, message="Bookmark deleted successfully", follow_up=follow_up)

    def _tag(self, command: Command) -> CommandResult:
        bookmark = self.bookmarks.add_tag(self._require_id(command), command.tag)
        return self._reindexed(command, bookmark, f"Tagged bookmark {bookmark.id} with '{command.tag}'")

    def _untag(self, command: Command) -> CommandResult:
        bookmark = self.bookmarks.remove_tag(self._require_id(command), command.tag)
        return self._reindexed(command, bookmark, f"Removed tag '{command.tag}' from bookmark {bookmark.id}")

    def _reindexed(self, command: Command, bookmark: Bookmark, message: str) -> CommandResult:
        self.state.selected = bookmark

        try:
            self.search.index_bookmark(bookmark)
        except SearchIndexError as e:
            logger.warning(f"Bookmark {bookmark.id} updated but not reindexed: {e}")
            return CommandResult(
                command,
                message=f"{message}, but indexing failed: {e}",
                level="warning",
                bookmark=bookmark,
            )

        return CommandResult(command, message=message, bookmark=bookmark)

    def _tags(self, command: Command) -> CommandResult:
        tags = self.bookmarks.get_all_tags()
        self.state.tags = tags

        return CommandResult(command, message=f"Loaded {len(tags)} tags", tags=tags, count=len(tags))

    def _reindex(self, command: Command) -> CommandResult:
        count = self.search.rebuild_index()
        return CommandResult(command, message=f"Search index rebuilt with {count} bookmarks", count=count)

    def _require_id(self, command: Command) -> int:
        if command.bookmark_id is None:
            raise BookmarkValidationError("A bookmark id is required")
        return command.bookmark_id


def _parse_id(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise CommandParseError(f"Bookmark id must be a number: {value!r}")


def parse_command_line(line: str) -> Command:
    """Turn a line of shell input into a Command.

    Example:
        "add https://go.dev go tutorial" -> ADD url=https://go.dev tags=("go", "tutorial")
        "search --fuzzy effective go"     -> SEARCH mode=fuzzy query="effective go"

    Raises:
        CommandParseError: If the verb is unknown or arguments are missing
    """
    try:
        words = shlex.split(line)
    except ValueError as e:
        raise CommandParseError(str(e)) from e

    if not words:
        raise CommandParseError("Empty command")

    verb, args = words[0].lower(), words[1:]

    try:
        kind = CommandKind(verb)
    except ValueError:
        raise CommandParseError(f"Unknown command: {verb}")

    if kind == CommandKind.LIST:
        return Command(kind, tag=args[0] if args else "")

    if kind == CommandKind.SEARCH:
        mode = SearchMode.FULLTEXT
        if args and args[0] == "--fuzzy":
            mode, args = SearchMode.FUZZY, args[1:]
        if not args:
            raise CommandParseError("Usage: search [--fuzzy] QUERY")
        return Command(kind, query=" ".join(args), mode=mode)

    if kind == CommandKind.ADD:
        if not args:
            raise CommandParseError("Usage: add URL [TAG...]")
        return Command(kind, url=args[0], tags=tuple(args[1:]))

    if kind in (CommandKind.VIEW, CommandKind.OPEN, CommandKind.DELETE):
        if len(args) != 1:
            raise CommandParseError(f"Usage: {verb} ID")
        return Command(kind, bookmark_id=_parse_id(args[0]))

    if kind in (CommandKind.TAG, CommandKind.UNTAG):
        if len(args) != 2:
            raise CommandParseError(f"Usage: {verb} ID TAG")
        return Command(kind, bookmark_id=_parse_id(args[0]), tag=args[1])

    return Command(kind)
