"""Turn SearchFilters into a QueryPlan of text terms and facet predicates."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any

from pydantic import ValidationError

from kb_search.domain.model import ContentStatus, ContentType
from kb_search.domain.search import SearchFilters
from kb_search.errors import MalformedQuery
from kb_search.search.analyzers import Analyzer


logger = logging.getLogger(__name__)

_TYPE_VALUES = frozenset(item.value for item in ContentType)
_STATUS_VALUES = frozenset(item.value for item in ContentStatus)


class FacetKind(str, Enum):
    """The fixed set of filterable facets."""

    TYPE = "type"
    CATEGORY = "category"
    TAGS = "tags"
    STATUS = "status"


@dataclass(frozen=True)
class FacetPredicate:
    """One facet constraint.

    ``value`` is a string for TYPE, CATEGORY and STATUS, and a frozenset of tag
    ids for TAGS (a document must carry every listed tag).
    """

    kind: FacetKind
    value: str | frozenset[str]

    @classmethod
    def type_is(cls, value: ContentType) -> FacetPredicate:
        return cls(FacetKind.TYPE, value.value)

    @classmethod
    def status_is(cls, value: ContentStatus) -> FacetPredicate:
        return cls(FacetKind.STATUS, value.value)

    @classmethod
    def category_is(cls, category_id: str) -> FacetPredicate:
        return cls(FacetKind.CATEGORY, category_id)

    @classmethod
    def has_tags(cls, tag_ids: frozenset[str]) -> FacetPredicate:
        return cls(FacetKind.TAGS, tag_ids)


@dataclass(frozen=True)
class QueryPlan:
    """Structured, ephemeral form of a search request."""

    text_terms: tuple[str, ...]
    facet_predicates: tuple[FacetPredicate, ...]

    @property
    def is_facet_only(self) -> bool:
        return not self.text_terms


def coerce_filters(raw: SearchFilters | Mapping[str, Any] | None) -> SearchFilters:
    """Accept a SearchFilters or a plain mapping (snake_case or camelCase keys)."""

    if raw is None:
        return SearchFilters()
    if isinstance(raw, SearchFilters):
        return raw
    try:
        return SearchFilters.model_validate(dict(raw))
    except ValidationError as exc:
        raise MalformedQuery(f"Invalid search filters: {exc.errors(include_url=False)}") from exc


class QueryPlanner:
    """Plans queries with the same analyzer the index writer uses."""

    def __init__(
        self,
        analyzer: Analyzer,
        *,
        max_query_length: int = 512,
        max_query_terms: int = 32,
    ) -> None:
        self.analyzer = analyzer
        self.max_query_length = max_query_length
        self.max_query_terms = max_query_terms

    def plan(self, filters: SearchFilters) -> QueryPlan:
        return QueryPlan(
            text_terms=self._text_terms(filters.query),
            facet_predicates=self._facet_predicates(filters),
        )

    def _text_terms(self, query: str | None) -> tuple[str, ...]:
        if query is None or not query.strip():
            return ()
        if len(query) > self.max_query_length:
            raise MalformedQuery(f"Query is {len(query)} characters; the limit is {self.max_query_length}")

        seen: set[str] = set()
        terms: list[str] = []
        for token in self.analyzer(query):
            if token.text in seen:
                continue
            seen.add(token.text)
            terms.append(token.text)

        if len(terms) > self.max_query_terms:
            raise MalformedQuery(f"Query has {len(terms)} distinct terms; the limit is {self.max_query_terms}")
        if not terms:
            logger.debug("Query %r analyzed to no terms; planning as facet-only", query)
        return tuple(terms)

    def _facet_predicates(self, filters: SearchFilters) -> tuple[FacetPredicate, ...]:
        predicates: list[FacetPredicate] = []

        if filters.type is not None:
            if filters.type not in _TYPE_VALUES:
                raise MalformedQuery(f"Unknown content type '{filters.type}'. Expected one of {sorted(_TYPE_VALUES)}")
            predicates.append(FacetPredicate.type_is(ContentType(filters.type)))

        if filters.category_id is not None:
            if not filters.category_id.strip():
                raise MalformedQuery("categoryId must not be blank")
            predicates.append(FacetPredicate.category_is(filters.category_id))

        if filters.tag_ids:
            if any(not tag_id.strip() for tag_id in filters.tag_ids):
                raise MalformedQuery("tagIds must not contain blank ids")
            predicates.append(FacetPredicate.has_tags(frozenset(filters.tag_ids)))

        if filters.status is not None:
            if filters.status not in _STATUS_VALUES:
                raise MalformedQuery(f"Unknown status '{filters.status}'. Expected one of {sorted(_STATUS_VALUES)}")
            predicates.append(FacetPredicate.status_is(ContentStatus(filters.status)))

        return tuple(predicates)

    @staticmethod
    def validate_page(page: int, page_size: int, *, max_page_size: int) -> None:
        if page < 1:
            raise MalformedQuery(f"page must be >= 1, got {page}")
        if page_size < 1:
            raise MalformedQuery(f"page_size must be >= 1, got {page_size}")
        if page_size > max_page_size:
            raise MalformedQuery(f"page_size {page_size} exceeds the maximum of {max_page_size}")
