"""Index-side document metadata with per-facet secondary maps."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from kb_search.domain.model import ContentStatus, ContentType
from kb_search.domain.search import FacetCounts
from kb_search.search.deadline import Deadline
from kb_search.search.persistent import EMPTY_SET, PersistentMap, PersistentSet
from kb_search.search.query_planner import FacetKind, FacetPredicate


@dataclass(frozen=True)
class IndexEntry:
    """Denormalized projection of a Document used for filtering and ranking."""

    document_id: str
    type: ContentType
    status: ContentStatus
    category_id: str | None = None
    tag_ids: frozenset[str] = frozenset()
    published_at: float | None = None
    field_lengths: Mapping[str, int] = field(default_factory=dict)
    stored_fields: Mapping[str, str] = field(default_factory=dict, repr=False)

    @property
    def length(self) -> int:
        return sum(self.field_lengths.values())


class _FacetMap:
    """facet value -> document ids, both persistent, so forks share everything."""

    __slots__ = ("_ids",)

    def __init__(self, ids: PersistentMap[str, PersistentSet[str]] | None = None) -> None:
        self._ids: PersistentMap[str, PersistentSet[str]] = ids if ids is not None else PersistentMap()

    @classmethod
    def from_sets(cls, ids: Mapping[str, Iterable[str]]) -> _FacetMap:
        return cls(PersistentMap({key: PersistentSet(doc_ids) for key, doc_ids in ids.items()}))

    def fork(self) -> _FacetMap:
        return _FacetMap(self._ids)

    def add(self, key: str, doc_id: str) -> None:
        self._ids = self._ids.set(key, self._ids.get(key, EMPTY_SET).add(doc_id))

    def discard(self, key: str, doc_id: str) -> None:
        ids = self._ids.get(key)
        if ids is None:
            return
        remaining = ids.discard(doc_id)
        self._ids = self._ids.set(key, remaining) if remaining else self._ids.delete(key)

    def get(self, key: str) -> PersistentSet[str]:
        return self._ids.get(key, EMPTY_SET)

    def keys(self) -> list[str]:
        return list(self._ids)


class DocumentStore:
    """Holds IndexEntry records and answers facet filters.

    A published store is never mutated; writers work on ``fork()``, which is
    O(1) because every map underneath is persistent.
    """

    def __init__(self) -> None:
        self._entries: PersistentMap[str, IndexEntry] = PersistentMap()
        self._by_type = _FacetMap()
        self._by_category = _FacetMap()
        self._by_tag = _FacetMap()
        self._by_status = _FacetMap()
        self._total_length = 0

    @classmethod
    def bulk_load(cls, entries: Iterable[IndexEntry]) -> DocumentStore:
        """Build a store in one pass; a later entry for the same id replaces the earlier one."""
        latest: dict[str, IndexEntry] = {}
        for entry in entries:
            latest[entry.document_id] = entry

        by_type: dict[str, set[str]] = {}
        by_category: dict[str, set[str]] = {}
        by_tag: dict[str, set[str]] = {}
        by_status: dict[str, set[str]] = {}
        for entry in latest.values():
            by_type.setdefault(entry.type.value, set()).add(entry.document_id)
            by_status.setdefault(entry.status.value, set()).add(entry.document_id)
            if entry.category_id is not None:
                by_category.setdefault(entry.category_id, set()).add(entry.document_id)
            for tag_id in entry.tag_ids:
                by_tag.setdefault(tag_id, set()).add(entry.document_id)

        store = cls()
        store._entries = PersistentMap(latest)
        store._by_type = _FacetMap.from_sets(by_type)
        store._by_category = _FacetMap.from_sets(by_category)
        store._by_tag = _FacetMap.from_sets(by_tag)
        store._by_status = _FacetMap.from_sets(by_status)
        store._total_length = sum(entry.length for entry in latest.values())
        return store

    def fork(self) -> DocumentStore:
        clone = DocumentStore.__new__(DocumentStore)
        clone._entries = self._entries
        clone._by_type = self._by_type.fork()
        clone._by_category = self._by_category.fork()
        clone._by_tag = self._by_tag.fork()
        clone._by_status = self._by_status.fork()
        clone._total_length = self._total_length
        return clone

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._entries

    def get(self, document_id: str) -> IndexEntry | None:
        return self._entries.get(document_id)

    def all_ids(self) -> set[str]:
        return set(self._entries)

    @property
    def total_length(self) -> int:
        return self._total_length

    @property
    def average_length(self) -> float:
        if not self._entries:
            return 0.0
        return self._total_length / len(self._entries)

    def upsert(self, entry: IndexEntry) -> None:
        previous = self._entries.get(entry.document_id)
        if previous is not None:
            self._unlink(previous)
        self._entries = self._entries.set(entry.document_id, entry)
        self._by_type.add(entry.type.value, entry.document_id)
        self._by_status.add(entry.status.value, entry.document_id)
        if entry.category_id is not None:
            self._by_category.add(entry.category_id, entry.document_id)
        for tag_id in entry.tag_ids:
            self._by_tag.add(tag_id, entry.document_id)
        self._total_length += entry.length

    def remove(self, document_id: str) -> IndexEntry | None:
        entry = self._entries.get(document_id)
        if entry is not None:
            self._entries = self._entries.delete(document_id)
            self._unlink(entry)
        return entry

    def _unlink(self, entry: IndexEntry) -> None:
        self._by_type.discard(entry.type.value, entry.document_id)
        self._by_status.discard(entry.status.value, entry.document_id)
        if entry.category_id is not None:
            self._by_category.discard(entry.category_id, entry.document_id)
        for tag_id in entry.tag_ids:
            self._by_tag.discard(tag_id, entry.document_id)
        self._total_length -= entry.length

    def _ids_for(self, predicate: FacetPredicate) -> list[PersistentSet[str]]:
        if predicate.kind is FacetKind.TYPE:
            return [self._by_type.get(predicate.value)]
        if predicate.kind is FacetKind.STATUS:
            return [self._by_status.get(predicate.value)]
        if predicate.kind is FacetKind.CATEGORY:
            return [self._by_category.get(predicate.value)]
        return [self._by_tag.get(tag_id) for tag_id in sorted(predicate.value)]

    def filter(self, predicates: Iterable[FacetPredicate], deadline: Deadline | None = None) -> set[str]:
        """Return ids matching every predicate; no predicates matches everything."""
        id_sets = [ids for predicate in predicates for ids in self._ids_for(predicate)]
        if not id_sets:
            return self.all_ids()
        id_sets.sort(key=len)
        result = set(id_sets[0])
        for ids in id_sets[1:]:
            if not result:
                break
            if deadline is not None:
                deadline.check("facet intersection")
            result = {doc_id for doc_id in result if doc_id in ids}
        return result

    def facet_counts(self, document_ids: Iterable[str]) -> FacetCounts:
        types: Counter[str] = Counter()
        categories: Counter[str] = Counter()
        tags: Counter[str] = Counter()
        statuses: Counter[str] = Counter()
        for document_id in document_ids:
            entry = self._entries.get(document_id)
            if entry is None:
                continue
            types[entry.type.value] += 1
            statuses[entry.status.value] += 1
            if entry.category_id is not None:
                categories[entry.category_id] += 1
            tags.update(entry.tag_ids)
        return FacetCounts(
            type=dict(sorted(types.items())),
            category=dict(sorted(categories.items())),
            tags=dict(sorted(tags.items())),
            status=dict(sorted(statuses.items())),
        )

    def facet_values(self, kind: FacetKind) -> list[str]:
        facet_map = {
            FacetKind.TYPE: self._by_type,
            FacetKind.CATEGORY: self._by_category,
            FacetKind.TAGS: self._by_tag,
            FacetKind.STATUS: self._by_status,
        }[kind]
        return sorted(facet_map.keys())
