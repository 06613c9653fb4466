"""Tests for BookmarkStore."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from bookmarker.core.store import BookmarkStore, PersistenceError
from bookmarker.models.bookmark import Bookmark, Tag


def _bookmark(url: str, title: str = "", tags=(), minutes_ago: int = 0) -> Bookmark:
    created = datetime(2026, 1, 1, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago)
    return Bookmark(
        url=url,
        title=title or url,
        created_at=created,
        updated_at=created,
        tags=[Tag(name=name) for name in tags],
    )


@pytest.fixture
def store():
    with tempfile.TemporaryDirectory() as temp_dir:
        with BookmarkStore(Path(temp_dir) / "data" / "bookmarks.db") as s:
            yield s


class TestCreateAndGet:
    """Test create, get_by_id and get_by_url."""

    def test_round_trip_with_tags(self, store):
        bookmark = _bookmark("https://go.dev", "Go", tags=["tui", "go"])
        bookmark.description = "The Go site"
        bookmark.content = "Build simple, secure, scalable systems."
        bookmark.summary = "Build simple, secure, scalable systems."

        created = store.create(bookmark)

        assert created.id is not None
        assert all(tag.id is not None for tag in created.tags)

        loaded = store.get_by_id(created.id)
        assert loaded.url == "https://go.dev"
        assert loaded.title == "Go"
        assert loaded.description == "The Go site"
        assert loaded.summary == bookmark.summary
        assert loaded.created_at == bookmark.created_at
        assert set(loaded.tag_names()) == {"go", "tui"}

    def test_get_by_url(self, store):
        created = store.create(_bookmark("https://example.com/a"))

        assert store.get_by_url("https://example.com/a").id == created.id
        assert store.get_by_url("https://example.com/b") is None

    def test_get_missing_returns_none(self, store):
        assert store.get_by_id(999) is None

    def test_duplicate_url_fails(self, store):
        store.create(_bookmark("https://example.com"))

        with pytest.raises(PersistenceError):
            store.create(_bookmark("https://example.com"))

        assert store.count() == 1

    def test_shared_tag_reuses_row(self, store):
        store.create(_bookmark("https://a.example", tags=["go"]))
        store.create(_bookmark("https://b.example", tags=["go"]))

        tags = store.get_all_tags()
        assert [tag.name for tag in tags] == ["go"]

    def test_failed_tag_insert_rolls_back(self, store):
        bad = Bookmark(url="https://bad.example", tags=[Tag.model_construct(name=None)])

        with pytest.raises(PersistenceError):
            store.create(bad)

        assert store.count() == 0
        assert store.get_by_url("https://bad.example") is None

    def test_rolled_back_create_leaves_tag_ids_unset(self, store):
        good = Tag(name="go")
        bad = Bookmark(url="https://bad.example", tags=[good, Tag.model_construct(name=None)])

        with pytest.raises(PersistenceError):
            store.create(bad)

        assert bad.id is None
        assert good.id is None
        assert store.get_all_tags() == []

    def test_rolled_back_update_leaves_new_tag_ids_unset(self, store):
        bookmark = store.create(_bookmark("https://go.dev", tags=["go"]))
        existing_id = bookmark.tags[0].id
        new = Tag(name="new")
        bookmark.tags = [bookmark.tags[0], new, Tag.model_construct(name=None)]

        with pytest.raises(PersistenceError):
            store.update(bookmark)

        assert new.id is None
        assert bookmark.tags[0].id == existing_id
        assert store.get_by_id(bookmark.id).tag_names() == ["go"]


class TestList:
    """Test ordering, filtering and pagination."""

    def test_newest_first(self, store):
        store.create(_bookmark("https://old.example", minutes_ago=10))
        store.create(_bookmark("https://new.example", minutes_ago=0))
        store.create(_bookmark("https://mid.example", minutes_ago=5))

        urls = [b.url for b in store.list()]

        assert urls == ["https://new.example", "https://mid.example", "https://old.example"]

    def test_tag_filter_is_exact(self, store):
        store.create(_bookmark("https://a.example", tags=["go"], minutes_ago=2))
        store.create(_bookmark("https://b.example", tags=["go", "tui"], minutes_ago=1))
        store.create(_bookmark("https://c.example", tags=["golang"]))

        go = store.list(tag="go")

        assert [b.url for b in go] == ["https://b.example", "https://a.example"]
        # Tags are attached in full, not just the filter tag.
        assert go[0].tag_names() == ["go", "tui"]
        assert store.list(tag="Go") == []

    def test_pagination(self, store):
        for i in range(5):
            store.create(_bookmark(f"https://{i}.example", minutes_ago=i))

        page = store.list(limit=2, offset=2)

        assert [b.url for b in page] == ["https://2.example", "https://3.example"]
        assert store.list(limit=2, offset=10) == []


class TestUpdate:
    """Test update semantics."""

    def test_update_replaces_fields_and_tags(self, store):
        bookmark = store.create(_bookmark("https://go.dev", "Go", tags=["go", "web"]))
        before = bookmark.updated_at

        bookmark.title = "The Go Programming Language"
        bookmark.remove_tag("web")
        bookmark.add_tag(Tag(name="lang"))

        assert store.update(bookmark) is True
        assert bookmark.updated_at > before

        loaded = store.get_by_id(bookmark.id)
        assert loaded.title == "The Go Programming Language"
        assert loaded.tag_names() == ["go", "lang"]
        assert loaded.created_at == before

    def test_update_missing_returns_false(self, store):
        ghost = _bookmark("https://ghost.example")
        ghost.id = 42

        assert store.update(ghost) is False

    def test_update_without_id_fails(self, store):
        with pytest.raises(PersistenceError):
            store.update(_bookmark("https://unsaved.example"))


class TestDelete:
    """Test delete and tag retention."""

    def test_delete_cascades_links_but_keeps_tags(self, store):
        first = store.create(_bookmark("https://a.example", tags=["go"]))
        second = store.create(_bookmark("https://b.example", tags=["go"]))

        assert store.delete(first.id) is True

        assert store.get_by_id(first.id) is None
        assert store.get_by_id(second.id).tag_names() == ["go"]
        assert [tag.name for tag in store.get_all_tags()] == ["go"]
        assert store.list(tag="go")[0].id == second.id

    def test_delete_missing_returns_false(self, store):
        assert store.delete(12345) is False

    def test_tags_remain_after_last_use(self, store):
        bookmark = store.create(_bookmark("https://a.example", tags=["orphan"]))
        store.delete(bookmark.id)

        assert [tag.name for tag in store.get_all_tags()] == ["orphan"]
        assert store.list(tag="orphan") == []


class TestPersistence:
    """Test reopening the database file."""

    def test_data_survives_reopen(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = Path(temp_dir) / "bookmarks.db"

            with BookmarkStore(db_path) as store:
                created = store.create(_bookmark("https://go.dev", tags=["go"]))

            with BookmarkStore(db_path) as store:
                loaded = store.get_by_id(created.id)

            assert loaded.url == "https://go.dev"
            assert loaded.tag_names() == ["go"]
