"""Error taxonomy of the search core.

Read-side errors (``MalformedQuery``, ``QueryTimeout``) always reach the
caller. Write-side errors are contained to the document being applied.
"""

from __future__ import annotations


class KBSearchError(Exception):
    """Base error for the knowledge base search core."""


class MalformedQuery(KBSearchError, ValueError):
    """Raised when search filters or pagination are invalid."""


class QueryTimeout(KBSearchError):
    """Raised when a query exceeds its work budget."""

    def __init__(self, budget_ms: float, stage: str) -> None:
        super().__init__(f"Query exceeded {budget_ms:.0f}ms budget during {stage}")
        self.budget_ms = budget_ms
        self.stage = stage


class IndexInconsistency(KBSearchError):
    """Raised when postings and the reverse index disagree for a document."""

    def __init__(self, document_id: str, detail: str) -> None:
        super().__init__(f"Index inconsistency for document '{document_id}': {detail}")
        self.document_id = document_id
        self.detail = detail


class WriteQueueOverflow(KBSearchError):
    """Backpressure signal: the writer queue stayed full, retry later."""


class EngineNotStarted(KBSearchError, RuntimeError):
    """Raised when the engine is used outside its start/close lifetime."""
