"""Statistical helpers for BM25 scoring.

These stay independent of the index structures so the formulas can be unit
tested on their own.
"""

from __future__ import annotations

from dataclasses import dataclass
import math


@dataclass(frozen=True)
class CollectionStats:
    """Corpus-level numbers BM25 needs."""

    document_count: int
    total_length: int

    @property
    def average_length(self) -> float:
        if self.document_count == 0:
            return 0.0
        return self.total_length / self.document_count


def calculate_idf(doc_freq: int, total_docs: int) -> float:
    """Return ``log(1 + (N - df + 0.5) / (df + 0.5))``.

    Always positive for ``0 <= df <= N``, so common terms never subtract score.
    """

    if total_docs <= 0:
        return 0.0
    df = max(0, min(doc_freq, total_docs))
    return math.log(1.0 + (total_docs - df + 0.5) / (df + 0.5))


def bm25(tf: int, doc_length: int, avg_doc_length: float, *, k1: float = 1.2, b: float = 0.75) -> float:
    """Compute the BM25 term weight without IDF."""

    if tf <= 0:
        return 0.0
    length_ratio = doc_length / avg_doc_length if avg_doc_length > 0 else 1.0
    denominator = tf + k1 * (1 - b + b * length_ratio)
    return (tf * (k1 + 1)) / denominator
