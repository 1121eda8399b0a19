"""Work budget for a single query."""

from __future__ import annotations

import time

from kb_search.errors import QueryTimeout


class Deadline:
    """Monotonic-clock deadline checked at stage boundaries and inside hot loops."""

    __slots__ = ("budget_ms", "_expires_at")

    def __init__(self, budget_ms: float) -> None:
        self.budget_ms = budget_ms
        self._expires_at = time.monotonic() + budget_ms / 1000.0

    @classmethod
    def unbounded(cls) -> Deadline:
        return cls(float("inf"))

    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    def check(self, stage: str) -> None:
        if self.expired():
            raise QueryTimeout(self.budget_ms, stage)
