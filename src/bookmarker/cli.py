"""Command-line interface for the bookmark manager."""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from .commands import (
    AppState,
    Command,
    CommandController,
    CommandKind,
    CommandParseError,
    CommandResult,
    SearchMode,
    parse_command_line,
)
from .models.bookmark import Bookmark

SHELL_HELP = """Commands:
  list [TAG]                 list bookmarks, optionally with one tag
  search [--fuzzy] QUERY     full-text search, or fuzzy title search
  add URL [TAG...]           save a URL
  view ID                    show one bookmark
  open ID                    open a bookmark in the browser
  delete ID                  delete a bookmark
  tag ID TAG / untag ID TAG  edit tags
  tags                       list all tags
  reindex                    rebuild the search index
  quit                       leave the shell"""


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _open_app(config_dir: Optional[Path]):
    """Load configuration and open the app, exiting with a message on failure."""
    from .app import BookmarkApp
    from .config import ConfigError, ConfigManager
    from .core.search_index import SearchIndexError
    from .core.store import PersistenceError

    try:
        cm = ConfigManager(config_dir)
        config = cm.load()
        _configure_logging(config.log_level)
        return BookmarkApp(config, cm)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except (PersistenceError, SearchIndexError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _controller(app) -> CommandController:
    return CommandController(
        app.bookmarks,
        app.search,
        AppState(),
        list_limit=app.config.list_default_limit,
        fuzzy_candidate_limit=app.config.fuzzy_candidate_limit,
    )


def _format_tags(bookmark: Bookmark, empty: str = "None") -> str:
    return ", ".join(bookmark.tag_names()) or empty


def _render_bookmark_line(bookmark: Bookmark) -> None:
    title = bookmark.title or bookmark.url
    click.echo(f"[{bookmark.id}] {title}")
    click.echo(f"     {bookmark.url}")
    click.echo(f"     tags: {_format_tags(bookmark, empty='No tags')}")


def _render_bookmark_details(bookmark: Bookmark) -> None:
    click.echo(f"Title: {bookmark.title}")
    click.echo(f"URL: {bookmark.url}")
    click.echo(f"Created: {bookmark.created_at.strftime('%Y-%m-%d %H:%M:%S')}")
    click.echo(f"Tags: {_format_tags(bookmark)}")
    click.echo(f"\nDescription: {bookmark.description}")
    click.echo(f"\nSummary:\n{bookmark.summary}")
    click.echo(f"\nContent:\n{bookmark.content}")


def _render(result: CommandResult) -> None:
    kind = result.command.kind

    if result.ok:
        if kind in (CommandKind.LIST, CommandKind.SEARCH):
            for bookmark in result.bookmarks:
                _render_bookmark_line(bookmark)
        elif kind == CommandKind.TAGS:
            for tag in result.tags:
                click.echo(tag.name)
        elif kind == CommandKind.VIEW and result.bookmark is not None:
            _render_bookmark_details(result.bookmark)
        elif kind == CommandKind.ADD and result.bookmark is not None:
            click.echo(f"[{result.bookmark.id}] {result.bookmark.title}")

    if result.level == "error":
        click.echo(f"Error: {result.message}", err=True)
    elif result.level == "warning":
        click.echo(f"Warning: {result.message}", err=True)
    else:
        click.echo(result.message)


def _run(config_dir: Optional[Path], command: Command) -> None:
    """Run one command (and its follow-ups) and exit 1 if it failed."""
    with _open_app(config_dir) as app:
        results = _controller(app).run([command])

    for result in results:
        _render(result)

    if not results[0].ok:
        sys.exit(1)


config_dir_option = click.option(
    "--config-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Configuration directory (default: ~/.bookmark-manager)",
)


@click.group()
@click.version_option(version="0.1.0", prog_name="bookmarker")
def cli():
    """Bookmarker - save URLs, tag them and search their content."""
    pass


@cli.command()
@click.option(
    "--data-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Directory for the database and search index (default: the config directory)",
)
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing config.yaml")
@config_dir_option
def init(data_dir: Optional[Path], force: bool, config_dir: Optional[Path]):
    """Create configuration, database and search index."""
    from .app import BookmarkApp
    from .config import ConfigError, ConfigManager
    from .core.search_index import SearchIndexError
    from .core.store import PersistenceError
    from .models.config import AppConfig

    try:
        cm = ConfigManager(config_dir)

        if cm.config_file.exists() and not force:
            click.echo(f"Error: {cm.config_file} already exists (use --force to overwrite)", err=True)
            sys.exit(1)

        click.echo(f"Initializing bookmarker at {cm.config_dir}...")

        config = AppConfig(data_dir=str(data_dir) if data_dir else None)
        cm.save_app_config(config)
        click.echo("[OK] Created config.yaml")

        with BookmarkApp(config, cm):
            pass

        click.echo(f"[OK] Created database at {cm.get_database_path(config)}")
        click.echo(f"[OK] Created search index at {cm.get_index_path(config)}")
        click.echo("\nAdd a bookmark with: bookmarker add <url>")

    except (ConfigError, PersistenceError, SearchIndexError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("url")
@click.option("-t", "--tag", "tags", multiple=True, help="Tag to attach (repeatable)")
@config_dir_option
def add(url: str, tags: Tuple[str, ...], config_dir: Optional[Path]):
    """Save URL, extracting its title, description and text."""
    _run(config_dir, Command(CommandKind.ADD, url=url, tags=tags))


@cli.command(name="list")
@click.option("--tag", default="", help="Only bookmarks with this exact tag")
@click.option("--limit", type=int, default=0, help="Maximum bookmarks to show")
@click.option("--offset", type=int, default=0, help="Bookmarks to skip")
@config_dir_option
def list_bookmarks(tag: str, limit: int, offset: int, config_dir: Optional[Path]):
    """List bookmarks, newest first."""
    _run(config_dir, Command(CommandKind.LIST, tag=tag, limit=limit, offset=offset))


@cli.command()
@click.argument("bookmark_id", type=int)
@config_dir_option
def view(bookmark_id: int, config_dir: Optional[Path]):
    """Show a bookmark with its summary and content."""
    _run(config_dir, Command(CommandKind.VIEW, bookmark_id=bookmark_id))


@cli.command(name="open")
@click.argument("bookmark_id", type=int)
@config_dir_option
def open_bookmark(bookmark_id: int, config_dir: Optional[Path]):
    """Open a bookmark's URL in the default browser."""
    _run(config_dir, Command(CommandKind.OPEN, bookmark_id=bookmark_id))


@cli.command()
@click.argument("bookmark_id", type=int)
@click.option("--yes", is_flag=True, default=False, help="Do not ask for confirmation")
@config_dir_option
def delete(bookmark_id: int, yes: bool, config_dir: Optional[Path]):
    """Delete a bookmark."""
    if not yes:
        click.confirm(f"Delete bookmark {bookmark_id}?", abort=True)

    with _open_app(config_dir) as app:
        result = _controller(app).dispatch(Command(CommandKind.DELETE, bookmark_id=bookmark_id))

    _render(result)
    if not result.ok:
        sys.exit(1)


@cli.command()
@click.argument("bookmark_id", type=int)
@click.argument("tag_name")
@config_dir_option
def tag(bookmark_id: int, tag_name: str, config_dir: Optional[Path]):
    """Add TAG_NAME to a bookmark."""
    _run(config_dir, Command(CommandKind.TAG, bookmark_id=bookmark_id, tag=tag_name))


@cli.command()
@click.argument("bookmark_id", type=int)
@click.argument("tag_name")
@config_dir_option
def untag(bookmark_id: int, tag_name: str, config_dir: Optional[Path]):
    """Remove TAG_NAME from a bookmark."""
    _run(config_dir, Command(CommandKind.UNTAG, bookmark_id=bookmark_id, tag=tag_name))


@cli.command()
@config_dir_option
def tags(config_dir: Optional[Path]):
    """List all tags."""
    _run(config_dir, Command(CommandKind.TAGS))


@cli.command()
@click.argument("query", nargs=-1, required=True)
@click.option("--fuzzy", is_flag=True, default=False, help="Fuzzy match on titles only")
@click.option("--limit", type=int, default=0, help="Maximum results")
@config_dir_option
def search(query: Tuple[str, ...], fuzzy: bool, limit: int, config_dir: Optional[Path]):
    """Search bookmarks by content, or by title with --fuzzy."""
    mode = SearchMode.FUZZY if fuzzy else SearchMode.FULLTEXT
    _run(config_dir, Command(CommandKind.SEARCH, query=" ".join(query), mode=mode, limit=limit))


@cli.command()
@config_dir_option
def reindex(config_dir: Optional[Path]):
    """Rebuild the search index from the database."""
    _run(config_dir, Command(CommandKind.REINDEX))


@cli.command()
@config_dir_option
def shell(config_dir: Optional[Path]):
    """Interactive session driven by a single command loop."""
    stdin = click.get_text_stream("stdin")

    with _open_app(config_dir) as app:
        controller = _controller(app)
        click.echo("Bookmarker shell. Type 'help' for commands, 'quit' to leave.")

        while True:
            click.echo("> ", nl=False)
            line = stdin.readline()
            if not line:
                click.echo()
                break

            line = line.strip()
            if not line:
                continue
            if line in ("quit", "exit"):
                break
            if line == "help":
                click.echo(SHELL_HELP)
                continue

            try:
                command = parse_command_line(line)
            except CommandParseError as e:
                click.echo(f"Error: {e}", err=True)
                continue

            for result in controller.run([command]):
                _render(result)


@cli.command()
@config_dir_option
def doctor(config_dir: Optional[Path]):
    """Validate local setup and report actionable fixes."""
    from .config import ConfigError, ConfigManager
    from .core.search_index import SearchIndex, SearchIndexError
    from .core.store import BookmarkStore, PersistenceError

    cm = ConfigManager(config_dir)
    failures = 0
    warnings = 0
    config = None
    bookmark_count: Optional[int] = None
    document_count: Optional[int] = None

    def report(status: str, message: str, fix: Optional[str] = None) -> None:
        click.echo(f"[{status}] {message}")
        if fix:
            click.echo(f"      Fix: {fix}")

    click.echo("=" * 60)
    click.echo("Bookmarker doctor")
    click.echo("=" * 60)
    click.echo(f"Config directory: {cm.config_dir}")

    if cm.config_file.exists():
        report("PASS", f"Found config file: {cm.config_file}")
        try:
            config = cm.load()
            report("PASS", "config.yaml parsed successfully")
        except ConfigError as e:
            failures += 1
            report("FAIL", f"config.yaml validation failed: {e}")
    else:
        failures += 1
        report("FAIL", f"Missing config file: {cm.config_file}", "Run: bookmarker init")

    if config is not None:
        try:
            data_dir = cm.ensure_data_dir(config)
            report("PASS", f"Data directory is writable: {data_dir}")
        except ConfigError as e:
            failures += 1
            report("FAIL", str(e))
            config = None

    store = None
    if config is not None:
        try:
            store = BookmarkStore(cm.get_database_path(config))
            bookmark_count = store.count()
            report("PASS", f"Database opened with {bookmark_count} bookmarks")
        except PersistenceError as e:
            failures += 1
            report("FAIL", f"Database is not usable: {e}")

    if store is not None:
        try:
            with SearchIndex(store, cm.get_index_path(config)) as index:
                document_count = index.document_count()
            report("PASS", f"Search index opened with {document_count} documents")
        except SearchIndexError as e:
            failures += 1
            report("FAIL", f"Search index is not usable: {e}", "Run: bookmarker reindex")
        finally:
            store.close()

    if bookmark_count is not None and document_count is not None:
        if bookmark_count != document_count:
            warnings += 1
            report(
                "WARN",
                f"Search index is out of sync ({document_count} documents, {bookmark_count} bookmarks)",
                "Run: bookmarker reindex",
            )
        else:
            report("PASS", "Search index matches the database")

    click.echo("-" * 60)
    click.echo(f"Summary: {failures} fail, {warnings} warn")

    if failures:
        sys.exit(1)
    sys.exit(0)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
