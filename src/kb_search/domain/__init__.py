"""Domain layer - value objects shared by the index and its callers.

No dependencies on the index internals or on infrastructure.
"""

from kb_search.domain.model import ContentStatus, ContentType, Document, IndexEvent, IndexEventType
from kb_search.domain.search import FacetCounts, Highlight, PaginatedResponse, SearchFilters, SearchResult


__all__ = [
    "ContentStatus",
    "ContentType",
    "Document",
    "FacetCounts",
    "Highlight",
    "IndexEvent",
    "IndexEventType",
    "PaginatedResponse",
    "SearchFilters",
    "SearchResult",
]
