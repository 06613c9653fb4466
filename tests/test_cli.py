"""Tests for CLI commands."""

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from bookmarker.cli import cli
from bookmarker.config import ConfigManager
from bookmarker.core.extractor import ExtractedContent, ExtractionError
from bookmarker.core.store import BookmarkStore
from bookmarker.models.bookmark import Bookmark

EFFECTIVE_GO = ExtractedContent(
    title="Effective Go",
    description="Tips for writing clear, idiomatic Go code.",
    content="Goroutines are cheap. Channels connect them. Select waits. Done.",
)


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    for key in ("BOOKMARKER_CONFIG_DIR", "BOOKMARKER_DATA_DIR", "BOOKMARKER_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config_dir():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir) / ".bookmark-manager"


@pytest.fixture
def runner(config_dir):
    runner = CliRunner()
    result = runner.invoke(cli, ["init", "--config-dir", str(config_dir)])
    assert result.exit_code == 0, result.output
    return runner


def _invoke(runner, config_dir, *args, **kwargs):
    return runner.invoke(cli, [*args, "--config-dir", str(config_dir)], **kwargs)


def _add(runner, config_dir, url="https://go.dev/doc/effective_go", *tags):
    tag_args = []
    for tag in tags:
        tag_args += ["-t", tag]

    with patch("bookmarker.core.extractor.HTMLExtractor.extract_content", return_value=EFFECTIVE_GO):
        return _invoke(runner, config_dir, "add", url, *tag_args)


class TestCliInit:
    """Test bookmarker init command."""

    def test_init_creates_config_database_and_index(self, config_dir):
        result = CliRunner().invoke(cli, ["init", "--config-dir", str(config_dir)])

        assert result.exit_code == 0
        assert "[OK] Created config.yaml" in result.output
        assert (config_dir / "config.yaml").exists()
        assert (config_dir / "bookmarks.db").exists()
        assert (config_dir / "search_index").is_dir()

    def test_init_with_custom_data_dir(self, config_dir):
        data_dir = config_dir.parent / "data"

        result = CliRunner().invoke(
            cli, ["init", "--config-dir", str(config_dir), "--data-dir", str(data_dir)]
        )

        assert result.exit_code == 0
        assert (data_dir / "bookmarks.db").exists()
        assert ConfigManager(config_dir).load().data_dir == str(data_dir)

    def test_init_refuses_to_overwrite(self, runner, config_dir):
        result = _invoke(runner, config_dir, "init")

        assert result.exit_code == 1
        assert "already exists" in result.output

        result = _invoke(runner, config_dir, "init", "--force")
        assert result.exit_code == 0

    def test_commands_require_init(self, config_dir):
        result = CliRunner().invoke(cli, ["list", "--config-dir", str(config_dir)])

        assert result.exit_code == 1
        assert "bookmarker init" in result.output


class TestCliBookmarks:
    """Test add, list, view, tag and delete commands."""

    def test_add_and_view(self, runner, config_dir):
        result = _add(runner, config_dir, "https://go.dev/doc/effective_go", "go", "docs")

        assert result.exit_code == 0, result.output
        assert "Added bookmark: Effective Go" in result.output

        result = _invoke(runner, config_dir, "view", "1")

        assert result.exit_code == 0
        assert "Title: Effective Go" in result.output
        assert "URL: https://go.dev/doc/effective_go" in result.output
        assert "Tags: docs, go" in result.output
        assert "Goroutines are cheap. Channels connect them. Select waits." in result.output

    def test_add_unreachable_url_still_saves(self, runner, config_dir):
        with patch(
            "bookmarker.core.extractor.HTMLExtractor.extract_content",
            side_effect=ExtractionError("connection refused"),
        ):
            result = _invoke(runner, config_dir, "add", "https://unreachable.invalid")

        assert result.exit_code == 0
        assert "Added bookmark: https://unreachable.invalid" in result.output

    def test_add_invalid_url(self, runner, config_dir):
        result = _invoke(runner, config_dir, "add", "not-a-url")

        assert result.exit_code == 1
        assert "Error: Invalid input" in result.output

    def test_list_filters_by_tag(self, runner, config_dir):
        _add(runner, config_dir, "https://go.dev/doc/effective_go", "go")
        _add(runner, config_dir, "https://example.com/other", "misc")

        result = _invoke(runner, config_dir, "list", "--tag", "go")

        assert result.exit_code == 0
        assert "https://go.dev/doc/effective_go" in result.output
        assert "https://example.com/other" not in result.output
        assert "Loaded 1 bookmarks" in result.output

    def test_tag_untag_and_tags(self, runner, config_dir):
        _add(runner, config_dir)

        assert _invoke(runner, config_dir, "tag", "1", "concurrency").exit_code == 0
        result = _invoke(runner, config_dir, "tags")
        assert "concurrency" in result.output

        result = _invoke(runner, config_dir, "untag", "1", "concurrency")
        assert result.exit_code == 0
        assert "Removed tag 'concurrency'" in result.output

        result = _invoke(runner, config_dir, "view", "1")
        assert "Tags: None" in result.output

    def test_open(self, runner, config_dir):
        _add(runner, config_dir)

        with patch("click.launch", return_value=0) as mock_launch:
            result = _invoke(runner, config_dir, "open", "1")

        assert result.exit_code == 0
        assert "Opening URL: https://go.dev/doc/effective_go" in result.output
        mock_launch.assert_called_once_with("https://go.dev/doc/effective_go")

    def test_open_unknown_bookmark(self, runner, config_dir):
        with patch("click.launch") as mock_launch:
            result = _invoke(runner, config_dir, "open", "9")

        assert result.exit_code == 1
        assert "Error: Bookmark not found: 9" in result.output
        mock_launch.assert_not_called()

    def test_view_unknown_bookmark(self, runner, config_dir):
        result = _invoke(runner, config_dir, "view", "9")

        assert result.exit_code == 1
        assert "Error: Bookmark not found: 9" in result.output

    def test_delete(self, runner, config_dir):
        _add(runner, config_dir)

        result = _invoke(runner, config_dir, "delete", "1", "--yes")

        assert result.exit_code == 0
        assert "Bookmark deleted successfully" in result.output
        assert _invoke(runner, config_dir, "view", "1").exit_code == 1

    def test_delete_asks_for_confirmation(self, runner, config_dir):
        _add(runner, config_dir)

        result = _invoke(runner, config_dir, "delete", "1", input="n\n")

        assert result.exit_code == 1
        assert _invoke(runner, config_dir, "view", "1").exit_code == 0


class TestCliSearch:
    """Test search and reindex commands."""

    def test_fulltext_search(self, runner, config_dir):
        _add(runner, config_dir)

        result = _invoke(runner, config_dir, "search", "goroutines")

        assert result.exit_code == 0
        assert "Effective Go" in result.output
        assert "Found 1 results" in result.output

    def test_fuzzy_search(self, runner, config_dir):
        _add(runner, config_dir)

        result = _invoke(runner, config_dir, "search", "--fuzzy", "effgo")

        assert result.exit_code == 0
        assert "Effective Go" in result.output

    def test_reindex_picks_up_unindexed_bookmarks(self, runner, config_dir):
        with BookmarkStore(config_dir / "bookmarks.db") as store:
            store.create(Bookmark(url="https://direct.example", title="Direct", content="unindexed text"))

        assert "Found 0 results" in _invoke(runner, config_dir, "search", "unindexed").output

        result = _invoke(runner, config_dir, "reindex")
        assert "Search index rebuilt with 1 bookmarks" in result.output

        assert "Found 1 results" in _invoke(runner, config_dir, "search", "unindexed").output


class TestCliDoctor:
    """Test bookmarker doctor command."""

    def test_doctor_passes_after_init(self, runner, config_dir):
        result = _invoke(runner, config_dir, "doctor")

        assert result.exit_code == 0
        assert "[PASS] config.yaml parsed successfully" in result.output
        assert "[PASS] Search index matches the database" in result.output
        assert "Summary: 0 fail, 0 warn" in result.output

    def test_doctor_fails_without_config(self, config_dir):
        result = CliRunner().invoke(cli, ["doctor", "--config-dir", str(config_dir)])

        assert result.exit_code == 1
        assert "[FAIL] Missing config file" in result.output
        assert "Run: bookmarker init" in result.output

    def test_doctor_warns_on_index_drift(self, runner, config_dir):
        with BookmarkStore(config_dir / "bookmarks.db") as store:
            store.create(Bookmark(url="https://direct.example", title="Direct"))

        result = _invoke(runner, config_dir, "doctor")

        assert result.exit_code == 0
        assert "[WARN] Search index is out of sync" in result.output
        assert "Run: bookmarker reindex" in result.output


class TestCliShell:
    """Test the interactive shell."""

    def test_shell_runs_commands(self, runner, config_dir):
        script = "\n".join([
            "help",
            "add https://go.dev/doc/effective_go go",
            "list go",
            "search goroutines",
            "bogus",
            "quit",
        ]) + "\n"

        with patch("bookmarker.core.extractor.HTMLExtractor.extract_content", return_value=EFFECTIVE_GO):
            result = _invoke(runner, config_dir, "shell", input=script)

        assert result.exit_code == 0, result.output
        assert "Commands:" in result.output
        assert "Added bookmark: Effective Go" in result.output
        assert "Loaded 1 bookmarks" in result.output
        assert "Found 1 results" in result.output
        assert "Unknown command: bogus" in result.output

    def test_shell_stops_at_end_of_input(self, runner, config_dir):
        result = _invoke(runner, config_dir, "shell", input="tags\n")

        assert result.exit_code == 0
        assert "Loaded 0 tags" in result.output
