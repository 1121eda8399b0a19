"""Ordering of candidate documents and highlight construction.

Text queries are scored with BM25 over the snapshot's corpus statistics.
Facet-only queries have no terms to score, so they rank by recency: the score
is the publication timestamp, and unpublished documents score zero. Both
orders break ties by ascending document id, which makes results
deterministic for a given snapshot.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
import heapq
import logging

from kb_search.config import SearchRankingConfig, SearchSnippetConfig
from kb_search.domain.search import Highlight, SearchResult
from kb_search.search.analyzers import Analyzer
from kb_search.search.deadline import Deadline
from kb_search.search.indexing_utils import INDEXED_FIELDS, field_for_position
from kb_search.search.snapshot import IndexSnapshot
from kb_search.search.snippet import build_field_snippet
from kb_search.search.stats import bm25, calculate_idf


logger = logging.getLogger(__name__)

# Deadline checks inside scoring loops happen every this many postings.
_CHECK_EVERY = 2048


def _order_key(item: tuple[str, float]) -> tuple[float, str]:
    doc_id, score = item
    return (-score, doc_id)


class Ranker:
    """Scores candidates against one snapshot and builds result highlights."""

    def __init__(
        self,
        analyzer: Analyzer,
        ranking: SearchRankingConfig | None = None,
        snippet: SearchSnippetConfig | None = None,
    ) -> None:
        self.analyzer = analyzer
        self.ranking = ranking or SearchRankingConfig()
        self.snippet = snippet or SearchSnippetConfig()

    def rank(
        self,
        candidate_ids: Collection[str],
        text_terms: Sequence[str],
        snapshot: IndexSnapshot,
        *,
        deadline: Deadline | None = None,
        limit: int | None = None,
    ) -> list[SearchResult]:
        """Return candidates ordered by descending score, then document id.

        ``limit`` caps the output. Above ``topk_threshold`` candidates it also
        switches from a full sort to heap selection of the top ``limit``.
        """
        if not candidate_ids:
            return []

        if text_terms:
            scores = self._bm25_scores(candidate_ids, text_terms, snapshot, deadline)
        else:
            scores = self._recency_scores(candidate_ids, snapshot)

        if deadline is not None:
            deadline.check("ranking")

        items = [(doc_id, scores.get(doc_id, 0.0)) for doc_id in candidate_ids]
        threshold = self.ranking.topk_threshold
        if limit is not None and threshold and len(items) > threshold:
            ordered = heapq.nsmallest(limit, items, key=_order_key)
        else:
            ordered = sorted(items, key=_order_key)
            if limit is not None:
                ordered = ordered[:limit]

        return [SearchResult(document_id=doc_id, score=score) for doc_id, score in ordered]

    def _bm25_scores(
        self,
        candidate_ids: Collection[str],
        text_terms: Sequence[str],
        snapshot: IndexSnapshot,
        deadline: Deadline | None,
    ) -> dict[str, float]:
        stats = snapshot.stats
        avg_length = stats.average_length
        k1, b = self.ranking.bm25_k1, self.ranking.bm25_b
        candidates = candidate_ids if isinstance(candidate_ids, (set, frozenset)) else set(candidate_ids)
        scores: dict[str, float] = {}
        steps = 0

        for term in text_terms:
            posting_list = snapshot.index.get_posting_list(term)
            if not posting_list:
                continue
            idf = calculate_idf(len(posting_list), stats.document_count)

            # Walk whichever side is shorter
            if len(posting_list) <= len(candidates):
                postings = (posting for posting in posting_list if posting.doc_id in candidates)
            else:
                postings = (posting for doc_id in candidates if (posting := posting_list.get(doc_id)) is not None)

            for posting in postings:
                steps += 1
                if deadline is not None and steps % _CHECK_EVERY == 0:
                    deadline.check("bm25 scoring")
                entry = snapshot.store.get(posting.doc_id)
                doc_length = entry.length if entry is not None else 0
                weight = bm25(posting.frequency, doc_length, avg_length, k1=k1, b=b)
                scores[posting.doc_id] = scores.get(posting.doc_id, 0.0) + idf * weight

        return scores

    def _recency_scores(self, candidate_ids: Collection[str], snapshot: IndexSnapshot) -> dict[str, float]:
        scores: dict[str, float] = {}
        for doc_id in candidate_ids:
            entry = snapshot.store.get(doc_id)
            published_at = entry.published_at if entry is not None else None
            scores[doc_id] = max(published_at, 0.0) if published_at is not None else 0.0
        return scores

    def highlight(self, result: SearchResult, text_terms: Sequence[str], snapshot: IndexSnapshot) -> SearchResult:
        """Attach one snippet per matched field, in title, summary, body order."""
        if not text_terms:
            return result
        entry = snapshot.store.get(result.document_id)
        if entry is None:
            return result

        first_in_field: dict[str, int] = {}
        for term in text_terms:
            posting = snapshot.index.get_posting_list(term).get(result.document_id)
            if posting is None:
                continue
            for position in posting.positions:
                located = field_for_position(entry.field_lengths, position)
                if located is None:
                    logger.warning(
                        "Posting position %d of '%s' is outside document %s", position, term, result.document_id
                    )
                    break
                field_name, field_position = located
                if field_position < first_in_field.get(field_name, field_position + 1):
                    first_in_field[field_name] = field_position

        highlights: list[Highlight] = []
        terms = frozenset(text_terms)
        for field_name in INDEXED_FIELDS:
            if field_name not in first_in_field:
                continue
            snippet = build_field_snippet(
                entry.stored_fields.get(field_name, ""),
                first_in_field[field_name],
                terms,
                self.analyzer,
                window_chars=self.snippet.window_chars,
                style=self.snippet.style,
                max_highlights=self.snippet.max_highlights,
            )
            if snippet:
                highlights.append(Highlight(field=field_name, snippet=snippet))

        return result.model_copy(update={"highlights": tuple(highlights)})
