"""Domain model for Knowledge Base content as seen by the search core.

The content store owns these objects. The index only keeps a denormalized
projection of them, so everything here is an immutable value object:
- ContentType / ContentStatus mirror the helpdesk's KB enums
- Document is the store's view of one content item
- IndexEvent is one committed mutation published by the store
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentType(str, Enum):
    """Kinds of Knowledge Base items."""

    ARTICLE = "article"
    VIDEO = "video"
    DOCUMENT = "document"


class ContentStatus(str, Enum):
    """Publication state of a Knowledge Base item."""

    DRAFT = "draft"
    PUBLISHED = "published"


class Document(BaseModel):
    """Value object for a content item handed to the index.

    Accepts both snake_case and the camelCase keys used by the helpdesk API
    (``categoryId``, ``tagIds``, ``bodyText``, ``publishedAt``). Numeric ids
    are coerced to strings so callers can use either.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    id: str = Field(min_length=1)
    type: ContentType
    title: str
    summary: str | None = None
    category_id: str | None = Field(default=None, alias="categoryId")
    tag_ids: frozenset[str] = Field(default_factory=frozenset, alias="tagIds")
    status: ContentStatus
    body_text: str = Field(default="", alias="bodyText")
    published_at: datetime | None = Field(default=None, alias="publishedAt")

    @field_validator("published_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def published_timestamp(self) -> float | None:
        """POSIX seconds of ``published_at`` or None when unpublished."""
        if self.published_at is None:
            return None
        return self.published_at.timestamp()


class IndexEventType(str, Enum):
    """Mutation kinds published by the content store."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class IndexEvent(BaseModel):
    """One committed content-store mutation, delivered at least once."""

    model_config = ConfigDict(frozen=True)

    type: IndexEventType
    document: Document

    @classmethod
    def created(cls, document: Document) -> IndexEvent:
        return cls(type=IndexEventType.CREATED, document=document)

    @classmethod
    def updated(cls, document: Document) -> IndexEvent:
        return cls(type=IndexEventType.UPDATED, document=document)

    @classmethod
    def deleted(cls, document: Document) -> IndexEvent:
        return cls(type=IndexEventType.DELETED, document=document)
