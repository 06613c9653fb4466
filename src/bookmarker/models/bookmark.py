"""Bookmark, tag and search document models."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Tag(BaseModel):
    """A named label shared across bookmarks."""

    id: Optional[int] = Field(None, description="Assigned by the store on first use")
    name: str = Field(..., description="Unique, case-sensitive tag name")


class Bookmark(BaseModel):
    """A saved URL with extracted text fields and a tag set."""

    id: Optional[int] = Field(None, description="Assigned by the store on creation")
    url: str = Field(..., min_length=1, description="The bookmarked URL (unique)")
    title: str = Field(default="", description="Page title")
    description: str = Field(default="", description="Meta description")
    content: str = Field(default="", description="Extracted main text")
    summary: str = Field(default="", description="Summary derived from content")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    tags: List[Tag] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "url": "https://go.dev/doc/effective_go",
                "title": "Effective Go",
                "description": "Tips for writing clear, idiomatic Go code.",
                "content": "Introduction Go is a new language. ...",
                "summary": "Introduction Go is a new language.",
                "created_at": "2026-02-03T10:30:00Z",
                "updated_at": "2026-02-03T10:30:00Z",
                "tags": [{"id": 1, "name": "go"}],
            }
        }
    )

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v: List[Tag]) -> List[Tag]:
        """Keep the first tag for each name."""
        seen = set()
        tags = []
        for tag in v:
            if tag.name in seen:
                continue
            seen.add(tag.name)
            tags.append(tag)
        return tags

    @classmethod
    def new(cls, url: str, title: str) -> "Bookmark":
        """Build an unsaved bookmark with matching timestamps."""
        now = utc_now()
        return cls(url=url, title=title, created_at=now, updated_at=now)

    def add_tag(self, tag: Tag) -> None:
        """Attach a tag unless one with the same name is already present."""
        if any(t.name == tag.name for t in self.tags):
            return
        self.tags.append(tag)

    def remove_tag(self, tag_name: str) -> None:
        """Detach the tag with this name, if present."""
        for i, tag in enumerate(self.tags):
            if tag.name == tag_name:
                del self.tags[i]
                return

    def tag_names(self) -> List[str]:
        return [tag.name for tag in self.tags]


class SearchDocument(BaseModel):
    """Denormalized projection of a bookmark stored in the search index."""

    id: str
    url: str
    title: str = ""
    description: str = ""
    content: str = ""
    summary: str = ""
    tags: List[str] = Field(default_factory=list)

    @classmethod
    def from_bookmark(cls, bookmark: Bookmark) -> "SearchDocument":
        if bookmark.id is None:
            raise ValueError("Cannot index a bookmark that has not been stored")

        return cls(
            id=str(bookmark.id),
            url=bookmark.url,
            title=bookmark.title,
            description=bookmark.description,
            content=bookmark.content,
            summary=bookmark.summary,
            tags=bookmark.tag_names(),
        )
