"""Knowledge Base search engine: the query entry point and index lifetime owner."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from types import TracebackType
from typing import Any

from kb_search.adapters.content_store import AbstractContentStore
from kb_search.config import Settings
from kb_search.domain.model import IndexEvent
from kb_search.domain.search import FacetCounts, PaginatedResponse, SearchFilters, SearchResult
from kb_search.errors import EngineNotStarted, MalformedQuery, QueryTimeout
from kb_search.observability.logging import configure_logging
from kb_search.observability.metrics import SEARCH_LATENCY, SEARCH_REQUESTS, init_metrics, track_latency
from kb_search.observability.tracing import create_span, init_tracing
from kb_search.search.analyzers import build_analyzer
from kb_search.search.deadline import Deadline
from kb_search.search.index_writer import IndexWriter
from kb_search.search.inverted_index import InvertedIndex
from kb_search.search.query_planner import QueryPlan, QueryPlanner, coerce_filters
from kb_search.search.ranker import Ranker
from kb_search.search.snapshot import IndexSnapshot, SnapshotRef


logger = logging.getLogger(__name__)

FiltersInput = SearchFilters | Mapping[str, Any] | None


def configure_observability(settings: Settings | None = None) -> None:
    """Set up logging, metrics and tracing for a process hosting the engine.

    Call once at application start, before creating engines. Exporters are
    left to the host; this only installs the providers and log handler.
    """
    settings = settings or Settings()
    configure_logging(level=settings.log_level, json_output=settings.json_logs)
    resource_attributes = {"kb.index": settings.index_name}
    init_metrics(service_name="kb-search", resource_attributes=resource_attributes)
    init_tracing(service_name="kb-search", resource_attributes=resource_attributes)


class KnowledgeBaseSearch:
    """Owns one in-memory index built from a content store.

    ``start`` replays every published document and starts the writer;
    ``close`` stops the writer and drops the index. Queries read the
    published snapshot once and never block on writes.
    """

    def __init__(self, content_store: AbstractContentStore, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self.content_store = content_store
        self.analyzer = build_analyzer(self.settings.analyzer)
        self.planner = QueryPlanner(
            self.analyzer,
            max_query_length=self.settings.max_query_length,
            max_query_terms=self.settings.max_query_terms,
        )
        self.ranker = Ranker(self.analyzer, self.settings.ranking, self.settings.snippet)
        self._snapshot_ref = SnapshotRef()
        self.writer = IndexWriter(
            self._snapshot_ref,
            self.analyzer,
            content_store,
            queue_size=self.settings.write_queue_size,
            submit_timeout=self.settings.submit_timeout_seconds,
            index_name=self.settings.index_name,
        )
        self._started = False

    # --- lifecycle ----------------------------------------------------------

    def start(self) -> KnowledgeBaseSearch:
        if self._started:
            return self
        with create_span("kb_search.start", attributes={"kb.index": self.settings.index_name}):
            snapshot = self.writer.rebuild(self.content_store.list_all_published())
            self.writer.start()
        self._started = True
        logger.info("Knowledge base search started with %d documents", snapshot.document_count)
        return self

    def close(self) -> None:
        if not self._started:
            return
        self.writer.stop()
        self.writer.clear()
        self._started = False
        logger.info("Knowledge base search closed")

    def __enter__(self) -> KnowledgeBaseSearch:
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def started(self) -> bool:
        return self._started

    def _require_started(self) -> IndexSnapshot:
        if not self._started:
            raise EngineNotStarted("KnowledgeBaseSearch.start() must be called before use")
        return self._snapshot_ref.get()

    # --- writes -------------------------------------------------------------

    def submit(self, event: IndexEvent, timeout: float | None = None) -> None:
        """Queue an event for the writer thread."""
        self._require_started()
        self.writer.submit(event, timeout=timeout)

    def apply(self, event: IndexEvent) -> bool:
        """Apply an event synchronously; the next search sees it."""
        self._require_started()
        return self.writer.apply(event)

    def flush(self) -> None:
        """Wait until every submitted event has been applied."""
        self.writer.join()

    # --- reads --------------------------------------------------------------

    def search(
        self,
        filters: FiltersInput = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> PaginatedResponse[SearchResult]:
        """Rank matching documents and return one page of results.

        Args:
            filters: SearchFilters or a mapping with snake_case or camelCase keys
            page: 1-based page number
            page_size: Results per page, defaults to ``settings.default_page_size``

        Raises:
            MalformedQuery: Invalid filters or pagination
            QueryTimeout: The query ran past ``settings.query_timeout_ms``
        """
        snapshot = self._require_started()
        index_label = self.settings.index_name
        status = "ok"
        with create_span("kb_search.search", attributes={"kb.index": index_label}) as span:
            try:
                with track_latency(SEARCH_LATENCY, index=index_label):
                    response = self._search(snapshot, filters, page, page_size)
                span.set_attribute("kb.total", response.total)
                return response
            except MalformedQuery:
                status = "malformed"
                raise
            except QueryTimeout as exc:
                status = "timeout"
                logger.warning("Search timed out: %s", exc)
                raise
            finally:
                SEARCH_REQUESTS.labels(index=index_label, status=status).inc()

    def _search(
        self,
        snapshot: IndexSnapshot,
        filters: FiltersInput,
        page: int,
        page_size: int | None,
    ) -> PaginatedResponse[SearchResult]:
        resolved = coerce_filters(filters)
        size = self.settings.default_page_size if page_size is None else page_size
        QueryPlanner.validate_page(page, size, max_page_size=self.settings.max_page_size)
        plan = self.planner.plan(resolved)

        deadline = Deadline(self.settings.query_timeout_ms)
        candidates = self._candidates(snapshot, plan, deadline)

        start = (page - 1) * size
        ranked = self.ranker.rank(candidates, plan.text_terms, snapshot, deadline=deadline, limit=start + size)
        items = [self.ranker.highlight(result, plan.text_terms, snapshot) for result in ranked[start:]]
        return PaginatedResponse[SearchResult].build(items, total=len(candidates), page=page, page_size=size)

    def _candidates(self, snapshot: IndexSnapshot, plan: QueryPlan, deadline: Deadline) -> set[str]:
        if plan.is_facet_only or plan.facet_predicates:
            facet_ids = snapshot.store.filter(plan.facet_predicates, deadline)
            deadline.check("facet intersection")
            if plan.is_facet_only or not facet_ids:
                return facet_ids
        else:
            facet_ids = None

        posting_lists = [snapshot.index.get_posting_list(term) for term in plan.text_terms]
        if self.settings.ranking.match_mode == "all":
            text_ids = InvertedIndex.intersect(posting_lists, deadline)
        else:
            text_ids = InvertedIndex.union([pl for pl in posting_lists if pl], deadline)
        deadline.check("candidate retrieval")

        if facet_ids is None:
            return set(text_ids)
        return {doc_id for doc_id in text_ids if doc_id in facet_ids}

    def facet_counts(self, filters: FiltersInput = None) -> FacetCounts:
        """Count facet values across every document matching ``filters``."""
        snapshot = self._require_started()
        plan = self.planner.plan(coerce_filters(filters))
        candidates = self._candidates(snapshot, plan, Deadline(self.settings.query_timeout_ms))
        return snapshot.store.facet_counts(candidates)

    def stats(self) -> dict[str, Any]:
        """Index health numbers for the published snapshot."""
        snapshot = self._snapshot_ref.get()
        return {
            "started": self._started,
            "version": snapshot.version,
            "document_count": snapshot.document_count,
            "vocabulary_size": snapshot.index.vocabulary_size,
            "average_document_length": snapshot.stats.average_length,
            "pending_reindex": sorted(self.writer.pending_reindex),
            "queue_depth": self.writer.queue_depth,
        }
