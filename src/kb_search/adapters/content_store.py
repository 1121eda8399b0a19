"""Content store abstractions the search core depends on.

The content store is the source of truth for Knowledge Base items. The index
reads from it in exactly two places: the cold-start replay
(``list_all_published``) and the forced reindex of one document
(``get_document``). Everything else arrives as IndexEvents.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
import logging
import threading

from kb_search.domain.model import ContentStatus, Document, IndexEvent


logger = logging.getLogger(__name__)

EventSubscriber = Callable[[IndexEvent], None]


class AbstractContentStore(ABC):
    """Read access to the content store for the index."""

    @abstractmethod
    def list_all_published(self) -> Iterable[Document]:
        """Return every published document, used to rebuild the index on start."""
        raise NotImplementedError

    @abstractmethod
    def get_document(self, document_id: str) -> Document | None:
        """Return the current version of one document, or None if it was deleted."""
        raise NotImplementedError


class InMemoryContentStore(AbstractContentStore):
    """Dictionary-backed content store that publishes an event per committed mutation.

    Subscribers are called after the mutation is visible through
    ``get_document`` and before the lock is released, so events for one
    document are emitted in commit order. Subscribers may call back into the
    store from the same thread.
    """

    def __init__(self, documents: Iterable[Document] = ()) -> None:
        self._documents: dict[str, Document] = {document.id: document for document in documents}
        self._subscribers: list[EventSubscriber] = []
        self._lock = threading.RLock()

    def subscribe(self, subscriber: EventSubscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: EventSubscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def list_all_published(self) -> list[Document]:
        with self._lock:
            documents = list(self._documents.values())
        return sorted(
            (document for document in documents if document.status is ContentStatus.PUBLISHED),
            key=lambda document: document.id,
        )

    def get_document(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def save(self, document: Document) -> IndexEvent:
        """Create or replace a document and publish Created or Updated."""
        with self._lock:
            existed = document.id in self._documents
            self._documents[document.id] = document
            event = IndexEvent.updated(document) if existed else IndexEvent.created(document)
            self._publish(event)
        return event

    def delete(self, document_id: str) -> IndexEvent | None:
        """Delete a document and publish Deleted; unknown ids publish nothing."""
        with self._lock:
            document = self._documents.pop(document_id, None)
            if document is None:
                logger.debug("Delete of unknown document %s ignored", document_id)
                return None
            event = IndexEvent.deleted(document)
            self._publish(event)
        return event

    def _publish(self, event: IndexEvent) -> None:
        for subscriber in list(self._subscribers):
            subscriber(event)

    def __len__(self) -> int:
        return len(self._documents)
