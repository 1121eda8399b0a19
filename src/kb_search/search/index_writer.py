"""Single writer that turns content-store events into published snapshots.

Every event is applied to a fork of the current snapshot. The fork is only
published after the affected document has been verified, so a failure leaves
the published snapshot exactly as it was. Inconsistencies are contained to
the one document and repaired by a forced reindex from the content store.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging
import queue
import threading

from kb_search.adapters.content_store import AbstractContentStore
from kb_search.domain.model import Document, IndexEvent, IndexEventType
from kb_search.errors import IndexInconsistency, WriteQueueOverflow
from kb_search.observability.metrics import INDEX_DOC_COUNT, INDEX_EVENTS, REINDEX_COUNT, WRITE_QUEUE_DEPTH
from kb_search.observability.tracing import create_span
from kb_search.search.analyzers import Analyzer
from kb_search.search.document_store import DocumentStore, IndexEntry
from kb_search.search.indexing_utils import AnalyzedDocument, analyze_document
from kb_search.search.inverted_index import InvertedIndex
from kb_search.search.snapshot import IndexSnapshot, SnapshotRef


logger = logging.getLogger(__name__)

_STOP = object()


def build_entry(document: Document, analyzed: AnalyzedDocument) -> IndexEntry:
    return IndexEntry(
        document_id=document.id,
        type=document.type,
        status=document.status,
        category_id=document.category_id,
        tag_ids=document.tag_ids,
        published_at=document.published_timestamp,
        field_lengths=analyzed.field_lengths,
        stored_fields=analyzed.stored_fields,
    )


class IndexWriter:
    """Applies IndexEvents one at a time and publishes the resulting snapshots.

    ``apply`` is synchronous. ``submit`` enqueues for the consumer thread
    started by ``start``. Both paths share one lock, so at most one event is
    being applied at any time.
    """

    def __init__(
        self,
        snapshot_ref: SnapshotRef,
        analyzer: Analyzer,
        content_store: AbstractContentStore | None = None,
        *,
        queue_size: int = 1024,
        submit_timeout: float = 5.0,
        index_name: str = "kb",
    ) -> None:
        self._ref = snapshot_ref
        self.analyzer = analyzer
        self.content_store = content_store
        self.submit_timeout = submit_timeout
        self.index_name = index_name
        self._queue: queue.Queue[object] = queue.Queue(maxsize=queue_size)
        self._apply_lock = threading.RLock()
        self._thread: threading.Thread | None = None
        self._stop_requested = False
        self._pending_reindex: set[str] = set()

    # --- synchronous application -----------------------------------------

    def apply(self, event: IndexEvent) -> bool:
        """Apply one event and publish the result.

        Returns True when the event was applied as given. Failures are not
        raised: the fork is discarded, the document is sent through forced
        reindex and False is returned. It stays in ``pending_reindex`` until
        a later apply or reindex of it succeeds.
        """
        document_id = event.document.id
        with self._apply_lock, create_span(
            "index.apply",
            attributes={"kb.document_id": document_id, "kb.event_type": event.type.value},
        ):
            draft = self._ref.get().fork()
            try:
                self._mutate(draft, event)
            except IndexInconsistency as exc:
                logger.warning("Inconsistent index state while applying %s: %s", event.type.value, exc)
                self._count_event(event.type, "inconsistent")
                self._force_reindex(exc.document_id or document_id)
                return False
            except Exception:
                logger.exception("Failed to apply %s for document %s; forcing reindex", event.type.value, document_id)
                self._count_event(event.type, "failed")
                self._force_reindex(document_id)
                return False

            self._publish(draft)
            self._pending_reindex.discard(document_id)
            self._count_event(event.type, "applied")
            logger.debug("Applied %s for document %s (version %d)", event.type.value, document_id, draft.version)
            return True

    def _mutate(self, draft: IndexSnapshot, event: IndexEvent) -> None:
        document = event.document
        self._remove(draft, document.id)
        if event.type is not IndexEventType.DELETED:
            self._index(draft, document)
        self._verify(draft, document.id)

    def _remove(self, draft: IndexSnapshot, document_id: str) -> None:
        draft.index.remove_postings(document_id)
        draft.store.remove(document_id)

    def _index(self, draft: IndexSnapshot, document: Document) -> None:
        analyzed = analyze_document(self.analyzer, document)
        draft.index.add_document(document.id, analyzed.term_positions)
        draft.store.upsert(build_entry(document, analyzed))

    def _verify(self, draft: IndexSnapshot, document_id: str) -> None:
        draft.index.verify_document(document_id)
        if document_id not in draft.store and draft.index.terms_for(document_id):
            raise IndexInconsistency(document_id, "postings remain for a document without an entry")

    def _force_reindex(self, document_id: str) -> None:
        """Purge ``document_id`` by full scan and reapply it from the content store."""
        self._pending_reindex.add(document_id)
        if self.content_store is None:
            logger.error("Document %s needs reindex but no content store is attached", document_id)
            REINDEX_COUNT.labels(index=self.index_name, outcome="unavailable").inc()
            return

        with create_span("index.force_reindex", attributes={"kb.document_id": document_id}):
            try:
                fresh = self.content_store.get_document(document_id)
            except Exception:
                logger.exception("Content store lookup failed during reindex of %s", document_id)
                REINDEX_COUNT.labels(index=self.index_name, outcome="failed").inc()
                return

            draft = self._ref.get().fork()
            draft.index.purge(document_id)
            draft.store.remove(document_id)
            try:
                if fresh is not None:
                    self._index(draft, fresh)
                self._verify(draft, document_id)
            except Exception:
                logger.exception("Forced reindex of %s failed; document stays pending", document_id)
                REINDEX_COUNT.labels(index=self.index_name, outcome="failed").inc()
                return

            self._publish(draft)
            self._pending_reindex.discard(document_id)
            REINDEX_COUNT.labels(index=self.index_name, outcome="repaired").inc()
            logger.info(
                "Reindexed document %s from content store (%s)",
                document_id,
                "reapplied" if fresh is not None else "removed",
            )

    def rebuild(self, documents: Iterable[Document]) -> IndexSnapshot:
        """Replace the published snapshot with one built from ``documents``."""
        with self._apply_lock, create_span("index.rebuild") as span:
            entries: list[IndexEntry] = []
            analyzed_docs: list[tuple[str, dict]] = []
            for document in documents:
                analyzed = analyze_document(self.analyzer, document)
                analyzed_docs.append((document.id, dict(analyzed.term_positions)))
                entries.append(build_entry(document, analyzed))

            current = self._ref.get()
            index = InvertedIndex.bulk_load(analyzed_docs)
            snapshot = IndexSnapshot(index, DocumentStore.bulk_load(entries), current.version + 1)
            self._publish(snapshot)
            self._pending_reindex.clear()
            span.set_attribute("kb.document_count", snapshot.document_count)
            logger.info(
                "Rebuilt index with %d documents and %d terms",
                snapshot.document_count,
                snapshot.index.vocabulary_size,
            )
            return snapshot

    def clear(self) -> None:
        """Publish an empty snapshot so the previous index can be released."""
        with self._apply_lock:
            self._publish(IndexSnapshot(version=self._ref.get().version + 1))
            self._pending_reindex.clear()

    def _publish(self, snapshot: IndexSnapshot) -> None:
        self._ref.publish(snapshot)
        INDEX_DOC_COUNT.labels(index=self.index_name).set(snapshot.document_count)

    def _count_event(self, event_type: IndexEventType, outcome: str) -> None:
        INDEX_EVENTS.labels(index=self.index_name, event_type=event_type.value, outcome=outcome).inc()

    @property
    def pending_reindex(self) -> frozenset[str]:
        return frozenset(self._pending_reindex)

    # --- queued application ------------------------------------------------

    def submit(self, event: IndexEvent, timeout: float | None = None) -> None:
        """Enqueue ``event``, waiting up to ``timeout`` seconds for space.

        Raises ``WriteQueueOverflow`` when the queue stays full; the event is
        not enqueued and the producer should retry it.
        """
        wait = self.submit_timeout if timeout is None else timeout
        try:
            self._queue.put(event, block=True, timeout=wait)
        except queue.Full:
            self._count_event(event.type, "rejected")
            raise WriteQueueOverflow(
                f"Index write queue is full ({self._queue.maxsize} events); retry {event.document.id} later"
            ) from None
        WRITE_QUEUE_DEPTH.labels(index=self.index_name).set(self._queue.qsize())

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the consumer thread.

        Raises RuntimeError while a previous consumer is still draining after
        a timed-out ``stop``; call ``stop`` again to wait for it.
        """
        if self._thread is not None:
            if self._stop_requested:
                raise RuntimeError("Index writer is still stopping; call stop() again before restarting")
            if self._thread.is_alive():
                return
        self._thread = threading.Thread(target=self._consume, name=f"{self.index_name}-index-writer", daemon=True)
        self._thread.start()
        logger.info("Index writer started")

    def stop(self, timeout: float | None = None) -> bool:
        """Apply everything already queued, then stop the consumer thread.

        Returns False when the thread is still running after ``timeout``; the
        writer then keeps its reference so no second consumer can start.
        """
        thread = self._thread
        if thread is None:
            return True
        if not self._stop_requested:
            self._stop_requested = True
            self._queue.put(_STOP)
        thread.join(timeout)
        if thread.is_alive():
            logger.warning("Index writer did not stop within %s seconds", timeout)
            return False
        self._thread = None
        self._stop_requested = False
        logger.info("Index writer stopped")
        return True

    def join(self) -> None:
        """Block until every queued event has been applied."""
        self._queue.join()

    def _consume(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.apply(item)  # type: ignore[arg-type]
            except Exception:
                # Keep consuming: one bad event must not stall the rest of the stream
                logger.exception("Failed to apply queued index event")
                if isinstance(item, IndexEvent):
                    self._count_event(item.type, "failed")
                    with self._apply_lock:
                        self._pending_reindex.add(item.document.id)
            finally:
                self._queue.task_done()
                WRITE_QUEUE_DEPTH.labels(index=self.index_name).set(self._queue.qsize())
