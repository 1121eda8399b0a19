"""In-memory search and ranking for helpdesk Knowledge Base content."""

from kb_search.adapters.content_store import AbstractContentStore, InMemoryContentStore
from kb_search.config import Settings
from kb_search.domain import (
    ContentStatus,
    ContentType,
    Document,
    FacetCounts,
    Highlight,
    IndexEvent,
    IndexEventType,
    PaginatedResponse,
    SearchFilters,
    SearchResult,
)
from kb_search.engine import KnowledgeBaseSearch, configure_observability
from kb_search.errors import (
    EngineNotStarted,
    IndexInconsistency,
    KBSearchError,
    MalformedQuery,
    QueryTimeout,
    WriteQueueOverflow,
)


__all__ = [
    "AbstractContentStore",
    "ContentStatus",
    "ContentType",
    "Document",
    "EngineNotStarted",
    "FacetCounts",
    "Highlight",
    "InMemoryContentStore",
    "IndexEvent",
    "IndexEventType",
    "IndexInconsistency",
    "KBSearchError",
    "KnowledgeBaseSearch",
    "MalformedQuery",
    "PaginatedResponse",
    "QueryTimeout",
    "SearchFilters",
    "SearchResult",
    "Settings",
    "WriteQueueOverflow",
    "configure_observability",
]
