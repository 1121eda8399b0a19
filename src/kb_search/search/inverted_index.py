"""Term -> postings map with a mandatory document -> terms reverse index.

Both maps are persistent and posting lists are immutable, so a fork is O(1)
and shares everything with its parent. Every mutation replaces only the
affected entries, so the index a query holds never changes underneath it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
import hashlib
import heapq
import logging
from typing import Any

from kb_search.errors import IndexInconsistency
from kb_search.search.deadline import Deadline
from kb_search.search.models import EMPTY_POSTING_LIST, Posting, PostingList
from kb_search.search.persistent import PersistentMap


logger = logging.getLogger(__name__)

# Deadline checks inside merge loops happen every this many steps.
_CHECK_EVERY = 4096


class InvertedIndex:
    """Inverted index over document ids.

    Mutating methods fail fast with ``IndexInconsistency``; a failed mutation
    may leave this instance half-updated, so writers mutate a ``fork()`` and
    throw it away on error.
    """

    def __init__(
        self,
        postings: Mapping[str, PostingList] | None = None,
        reverse: Mapping[str, frozenset[str]] | None = None,
    ) -> None:
        self._postings: PersistentMap[str, PostingList] = PersistentMap(postings)
        self._reverse: PersistentMap[str, frozenset[str]] = PersistentMap(reverse)

    def fork(self) -> InvertedIndex:
        return InvertedIndex(self._postings, self._reverse)

    @classmethod
    def bulk_load(cls, documents: Iterable[tuple[str, Mapping[str, Sequence[int]]]]) -> InvertedIndex:
        """Build an index from ``(document_id, term_positions)`` pairs in one pass.

        Each posting list is built once instead of growing one insert at a
        time. A later pair for the same document id replaces the earlier one.
        """
        latest: dict[str, Mapping[str, Sequence[int]]] = {}
        for document_id, term_positions in documents:
            latest[document_id] = term_positions

        accumulated: dict[str, list[Posting]] = {}
        reverse: dict[str, frozenset[str]] = {}
        for document_id in sorted(latest):
            term_positions = latest[document_id]
            for term, positions in term_positions.items():
                posting = Posting(doc_id=document_id, frequency=len(positions), positions=tuple(positions))
                accumulated.setdefault(term, []).append(posting)
            if term_positions:
                reverse[document_id] = frozenset(term_positions)

        # Documents were visited in id order, so every list is already sorted
        postings = {term: PostingList.from_sorted(tuple(items)) for term, items in accumulated.items()}
        return cls(postings, reverse)

    # --- mutation ---------------------------------------------------------

    def add_posting(self, term: str, document_id: str, frequency: int, positions: Sequence[int]) -> None:
        """Insert one posting, keeping the term's list in document-id order."""
        posting = Posting(doc_id=document_id, frequency=frequency, positions=tuple(positions))
        self._postings = self._postings.set(term, self._postings.get(term, EMPTY_POSTING_LIST).with_posting(posting))
        self._reverse = self._reverse.set(document_id, self._reverse.get(document_id, frozenset()) | {term})

    def add_document(self, document_id: str, term_positions: Mapping[str, Sequence[int]]) -> None:
        """Insert postings for every term of a document in one pass."""
        if document_id in self._reverse:
            raise IndexInconsistency(document_id, "document already has postings; remove them first")
        postings = self._postings
        for term, positions in term_positions.items():
            posting = Posting(doc_id=document_id, frequency=len(positions), positions=tuple(positions))
            postings = postings.set(term, postings.get(term, EMPTY_POSTING_LIST).with_posting(posting))
        self._postings = postings
        if term_positions:
            self._reverse = self._reverse.set(document_id, frozenset(term_positions))

    def remove_postings(self, document_id: str) -> int:
        """Remove every posting of ``document_id`` via the reverse index.

        Returns the number of postings removed (0 for an unknown document).
        """
        terms = self._reverse.get(document_id)
        if terms is None:
            return 0
        self._reverse = self._reverse.delete(document_id)
        for term in sorted(terms):
            current = self._postings.get(term)
            remaining = current.without(document_id) if current is not None else None
            if remaining is None:
                raise IndexInconsistency(document_id, f"reverse index lists term '{term}' but no posting exists")
            if remaining:
                self._postings = self._postings.set(term, remaining)
            else:
                self._postings = self._postings.delete(term)
        return len(terms)

    def purge(self, document_id: str) -> int:
        """Scan every posting list and drop ``document_id``.

        Only for forced reindex after ``IndexInconsistency``; the normal path
        goes through ``remove_postings``.
        """
        removed = 0
        for term, current in list(self._postings.items()):
            remaining = current.without(document_id)
            if remaining is None:
                continue
            removed += 1
            if remaining:
                self._postings = self._postings.set(term, remaining)
            else:
                self._postings = self._postings.delete(term)
        self._reverse = self._reverse.delete(document_id)
        if removed:
            logger.warning("Purged %d postings for document %s by full scan", removed, document_id)
        return removed

    def verify_document(self, document_id: str) -> None:
        """Check that the reverse index and postings agree for one document."""
        for term in self._reverse.get(document_id, frozenset()):
            current = self._postings.get(term)
            if current is None or document_id not in current:
                raise IndexInconsistency(document_id, f"missing posting for term '{term}'")

    # --- lookup -----------------------------------------------------------

    def get_posting_list(self, term: str) -> PostingList:
        return self._postings.get(term, EMPTY_POSTING_LIST)

    def document_frequency(self, term: str) -> int:
        return len(self._postings.get(term, EMPTY_POSTING_LIST))

    def terms_for(self, document_id: str) -> frozenset[str]:
        return self._reverse.get(document_id, frozenset())

    def __contains__(self, term: object) -> bool:
        return term in self._postings

    @property
    def vocabulary_size(self) -> int:
        return len(self._postings)

    @property
    def document_count(self) -> int:
        return len(self._reverse)

    @staticmethod
    def intersect(posting_lists: Sequence[PostingList], deadline: Deadline | None = None) -> list[str]:
        """Merge-join sorted posting lists into ascending document ids."""
        if not posting_lists:
            return []
        ordered = sorted(posting_lists, key=len)
        result: Sequence[str] = ordered[0].doc_ids
        steps = 0
        for posting_list in ordered[1:]:
            other = posting_list.doc_ids
            merged: list[str] = []
            i = j = 0
            while i < len(result) and j < len(other):
                steps += 1
                if deadline is not None and steps % _CHECK_EVERY == 0:
                    deadline.check("posting intersection")
                left, right = result[i], other[j]
                if left == right:
                    merged.append(left)
                    i += 1
                    j += 1
                elif left < right:
                    i += 1
                else:
                    j += 1
            result = merged
            if not result:
                break
        return list(result)

    @staticmethod
    def union(posting_lists: Sequence[PostingList], deadline: Deadline | None = None) -> list[str]:
        """K-way merge of sorted posting lists into unique ascending document ids."""
        result: list[str] = []
        for steps, doc_id in enumerate(heapq.merge(*(pl.doc_ids for pl in posting_lists)), start=1):
            if deadline is not None and steps % _CHECK_EVERY == 0:
                deadline.check("posting union")
            if not result or result[-1] != doc_id:
                result.append(doc_id)
        return result

    # --- state inspection -------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Canonical, sorted view of the full index state."""
        return {
            "postings": {term: self._postings[term].to_list() for term in sorted(self._postings)},
            "reverse": {doc_id: sorted(terms) for doc_id, terms in sorted(self._reverse.items())},
        }

    def fingerprint(self) -> str:
        """SHA-256 digest of the canonical index state; equal digests mean identical indexes."""
        digest = hashlib.sha256()
        for term in sorted(self._postings):
            digest.update(term.encode("utf-8"))
            for posting in self._postings[term]:
                digest.update(f"\x1f{posting.doc_id}\x1f{posting.frequency}\x1f{posting.positions}".encode())
            digest.update(b"\x1e")
        digest.update(b"\x1d")
        for doc_id in sorted(self._reverse):
            digest.update(f"{doc_id}\x1f{sorted(self._reverse[doc_id])}\x1e".encode())
        return digest.hexdigest()

