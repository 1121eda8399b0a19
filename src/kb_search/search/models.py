"""Search data models: postings and posting lists."""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from itertools import chain
from typing import Any

from kb_search.errors import IndexInconsistency


# Target postings per chunk; chunks split above twice this and merge below a quarter.
CHUNK_SIZE = 256


@dataclass(frozen=True)
class Posting:
    """A posting represents a term occurrence in a document."""

    doc_id: str
    frequency: int
    positions: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        if self.frequency < 1:
            raise IndexInconsistency(self.doc_id, f"posting frequency must be >= 1, got {self.frequency}")
        if len(self.positions) != self.frequency:
            raise IndexInconsistency(
                self.doc_id,
                f"posting has {len(self.positions)} positions for frequency {self.frequency}",
            )
        if any(later <= earlier for earlier, later in zip(self.positions, self.positions[1:])):
            raise IndexInconsistency(self.doc_id, "posting positions must be strictly increasing")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "doc_id": self.doc_id,
            "frequency": self.frequency,
            "positions": list(self.positions),
        }


class PostingList:
    """Immutable postings of one term ordered by document id.

    Postings are stored in sorted chunks of roughly ``CHUNK_SIZE``. Mutators
    return a new list that rebuilds only the touched chunk and shares every
    other chunk, so a published list can be shared between index snapshots
    and an insert never copies the whole term.
    """

    __slots__ = ("_chunks", "_chunk_ids", "_firsts", "_length", "_flat_ids")

    def __init__(self, postings: Iterable[Posting] = ()) -> None:
        items = tuple(postings)
        doc_ids = tuple(posting.doc_id for posting in items)
        if any(later <= earlier for earlier, later in zip(doc_ids, doc_ids[1:])):
            raise ValueError("PostingList document ids must be unique and ascending")
        self._assign_sorted(items, doc_ids)

    @classmethod
    def from_sorted(cls, postings: tuple[Posting, ...]) -> PostingList:
        """Build from postings the caller guarantees are in ascending, unique id order."""
        plist = cls.__new__(cls)
        plist._assign_sorted(postings, tuple(posting.doc_id for posting in postings))
        return plist

    def _assign_sorted(self, postings: tuple[Posting, ...], doc_ids: tuple[str, ...]) -> None:
        bounds = range(0, len(postings), CHUNK_SIZE)
        self._chunks = tuple(postings[i : i + CHUNK_SIZE] for i in bounds)
        self._chunk_ids = tuple(doc_ids[i : i + CHUNK_SIZE] for i in bounds)
        self._firsts = tuple(ids[0] for ids in self._chunk_ids)
        self._length = len(postings)
        self._flat_ids: tuple[str, ...] | None = doc_ids

    def _splice(
        self,
        start: int,
        stop: int,
        chunks: tuple[tuple[Posting, ...], ...],
        chunk_ids: tuple[tuple[str, ...], ...],
        length: int,
    ) -> PostingList:
        """New list with chunks ``[start, stop)`` replaced; other chunks are shared."""
        plist = PostingList.__new__(PostingList)
        plist._chunks = self._chunks[:start] + chunks + self._chunks[stop:]
        plist._chunk_ids = self._chunk_ids[:start] + chunk_ids + self._chunk_ids[stop:]
        plist._firsts = self._firsts[:start] + tuple(ids[0] for ids in chunk_ids) + self._firsts[stop:]
        plist._length = length
        plist._flat_ids = None
        return plist

    def __len__(self) -> int:
        return self._length

    def __iter__(self) -> Iterator[Posting]:
        return chain.from_iterable(self._chunks)

    def __bool__(self) -> bool:
        return self._length > 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PostingList):
            return NotImplemented
        return self._length == other._length and self.postings == other.postings

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"PostingList(length={self._length}, chunks={len(self._chunks)})"

    @property
    def postings(self) -> tuple[Posting, ...]:
        return tuple(self)

    @property
    def doc_ids(self) -> tuple[str, ...]:
        """All document ids in ascending order, materialized on first use."""
        flat = self._flat_ids
        if flat is None:
            flat = tuple(chain.from_iterable(self._chunk_ids))
            self._flat_ids = flat
        return flat

    def _locate(self, doc_id: str) -> tuple[int, int, bool]:
        """Return ``(chunk index, offset, found)`` for ``doc_id``."""
        chunk_idx = max(bisect_right(self._firsts, doc_id) - 1, 0)
        ids = self._chunk_ids[chunk_idx]
        offset = bisect_left(ids, doc_id)
        return chunk_idx, offset, offset < len(ids) and ids[offset] == doc_id

    def get(self, doc_id: str) -> Posting | None:
        if not self._length:
            return None
        chunk_idx, offset, found = self._locate(doc_id)
        return self._chunks[chunk_idx][offset] if found else None

    def __contains__(self, doc_id: object) -> bool:
        return isinstance(doc_id, str) and self._length > 0 and self._locate(doc_id)[2]

    def with_posting(self, posting: Posting) -> PostingList:
        """Return a copy with ``posting`` inserted in document-id order."""
        if not self._length:
            return self._splice(0, 0, ((posting,),), ((posting.doc_id,),), 1)

        chunk_idx, offset, found = self._locate(posting.doc_id)
        if found:
            raise IndexInconsistency(posting.doc_id, "duplicate posting for term")
        chunk = self._chunks[chunk_idx]
        ids = self._chunk_ids[chunk_idx]
        new_chunk = chunk[:offset] + (posting,) + chunk[offset:]
        new_ids = ids[:offset] + (posting.doc_id,) + ids[offset:]
        chunks, chunk_ids = _rebalance(new_chunk, new_ids)
        return self._splice(chunk_idx, chunk_idx + 1, chunks, chunk_ids, self._length + 1)

    def without(self, doc_id: str) -> PostingList | None:
        """Return a copy without ``doc_id``'s posting, or None when it is absent."""
        if not self._length:
            return None
        chunk_idx, offset, found = self._locate(doc_id)
        if not found:
            return None

        chunk = self._chunks[chunk_idx]
        ids = self._chunk_ids[chunk_idx]
        new_chunk = chunk[:offset] + chunk[offset + 1 :]
        new_ids = ids[:offset] + ids[offset + 1 :]
        start, stop = chunk_idx, chunk_idx + 1

        if len(new_chunk) < CHUNK_SIZE // 4 and len(self._chunks) > 1:
            if chunk_idx + 1 < len(self._chunks):
                new_chunk += self._chunks[chunk_idx + 1]
                new_ids += self._chunk_ids[chunk_idx + 1]
                stop += 1
            else:
                new_chunk = self._chunks[chunk_idx - 1] + new_chunk
                new_ids = self._chunk_ids[chunk_idx - 1] + new_ids
                start -= 1

        chunks, chunk_ids = _rebalance(new_chunk, new_ids)
        return self._splice(start, stop, chunks, chunk_ids, self._length - 1)

    def to_list(self) -> list[dict[str, Any]]:
        return [posting.to_dict() for posting in self]


def _rebalance(
    chunk: tuple[Posting, ...], ids: tuple[str, ...]
) -> tuple[tuple[tuple[Posting, ...], ...], tuple[tuple[str, ...], ...]]:
    if not chunk:
        return (), ()
    if len(chunk) > 2 * CHUNK_SIZE:
        half = len(chunk) // 2
        return (chunk[:half], chunk[half:]), (ids[:half], ids[half:])
    return (chunk,), (ids,)


EMPTY_POSTING_LIST = PostingList()
