"""Immutable index snapshots and the single reference readers load them from.

The writer builds the next snapshot on a fork of the current one and swaps
the reference in one assignment. A reader loads the reference once per query
and keeps that snapshot for the whole query, so it never sees a half-applied
event.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import threading

from kb_search.search.document_store import DocumentStore
from kb_search.search.inverted_index import InvertedIndex
from kb_search.search.stats import CollectionStats


@dataclass(frozen=True)
class IndexSnapshot:
    """A consistent pair of inverted index and document store."""

    index: InvertedIndex = field(default_factory=InvertedIndex)
    store: DocumentStore = field(default_factory=DocumentStore)
    version: int = 0

    @property
    def document_count(self) -> int:
        return len(self.store)

    @property
    def stats(self) -> CollectionStats:
        return CollectionStats(document_count=len(self.store), total_length=self.store.total_length)

    def fork(self) -> IndexSnapshot:
        """Writable draft of the next version; publishing it is the writer's call."""
        return IndexSnapshot(self.index.fork(), self.store.fork(), self.version + 1)


class SnapshotRef:
    """Holder of the currently published snapshot.

    Reads are a plain attribute load. ``publish`` is serialized so versions
    only move forward.
    """

    def __init__(self, snapshot: IndexSnapshot | None = None) -> None:
        self._snapshot = snapshot if snapshot is not None else IndexSnapshot()
        self._publish_lock = threading.Lock()

    def get(self) -> IndexSnapshot:
        return self._snapshot

    def publish(self, snapshot: IndexSnapshot) -> None:
        with self._publish_lock:
            if snapshot.version <= self._snapshot.version:
                raise ValueError(
                    f"Snapshot version {snapshot.version} is not newer than published version {self._snapshot.version}"
                )
            self._snapshot = snapshot
