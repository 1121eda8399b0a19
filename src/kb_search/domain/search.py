"""Domain models for search requests and responses.

Value objects are immutable (frozen=True). Field names follow Python
conventions while aliases keep the helpdesk API's camelCase keys working.
"""

from __future__ import annotations

import math
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")


class SearchFilters(BaseModel):
    """Faceted search request.

    Facet values are kept as plain strings here; the query planner validates
    them so that bad values surface as ``MalformedQuery`` rather than as a
    pydantic error deep inside the caller.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    query: str | None = None
    type: str | None = None
    category_id: str | None = Field(default=None, alias="categoryId")
    tag_ids: tuple[str, ...] | None = Field(default=None, alias="tagIds")
    status: str | None = None


class Highlight(BaseModel):
    """Snippet of one matched field."""

    model_config = ConfigDict(frozen=True)

    field: str
    snippet: str


class SearchResult(BaseModel):
    """Value object for a single ranked result."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    document_id: str = Field(alias="documentId")
    score: float = Field(ge=0.0)
    highlights: tuple[Highlight, ...] = ()


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of results plus totals, mirroring the helpdesk API shape."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    items: list[T]
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    page_size: int = Field(ge=1, alias="pageSize")
    total_pages: int = Field(ge=0, alias="totalPages")

    @classmethod
    def build(cls, items: list[T], *, total: int, page: int, page_size: int) -> PaginatedResponse[T]:
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if total else 0,
        )


class FacetCounts(BaseModel):
    """Per-facet value counts for a candidate set."""

    model_config = ConfigDict(frozen=True)

    type: dict[str, int] = Field(default_factory=dict)
    category: dict[str, int] = Field(default_factory=dict)
    tags: dict[str, int] = Field(default_factory=dict)
    status: dict[str, int] = Field(default_factory=dict)
