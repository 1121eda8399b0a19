"""Persistent hash map and set with structural sharing.

Both are hash array mapped tries: every update returns a new collection that
shares all untouched nodes with the old one, so an update costs O(log32 N)
node copies and the previous version stays valid for readers that hold it.
Index snapshots are built on these so that forking a snapshot is O(1) and a
write only pays for the keys it touches.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Set
from typing import Any, Generic, TypeVar


K = TypeVar("K")
V = TypeVar("V")

_BITS = 5
_MASK = (1 << _BITS) - 1
_HASH_MASK = (1 << 64) - 1

_MISSING: Any = object()


class _Leaf:
    __slots__ = ("hash", "key", "value")

    def __init__(self, hash_: int, key: Any, value: Any) -> None:
        self.hash = hash_
        self.key = key
        self.value = value


class _Collision:
    """Keys whose full 64-bit hashes are equal."""

    __slots__ = ("hash", "pairs")

    def __init__(self, hash_: int, pairs: tuple[tuple[Any, Any], ...]) -> None:
        self.hash = hash_
        self.pairs = pairs


class _Branch:
    __slots__ = ("bitmap", "slots")

    def __init__(self, bitmap: int, slots: tuple[Any, ...]) -> None:
        self.bitmap = bitmap
        self.slots = slots


def _hash(key: Any) -> int:
    return hash(key) & _HASH_MASK


def _slot(bitmap: int, bit: int) -> int:
    return (bitmap & (bit - 1)).bit_count()


def _merge(a: Any, b: Any, shift: int) -> _Branch:
    """Branch holding two terminal nodes with different hashes."""
    ia = (a.hash >> shift) & _MASK
    ib = (b.hash >> shift) & _MASK
    if ia == ib:
        return _Branch(1 << ia, (_merge(a, b, shift + _BITS),))
    bitmap = (1 << ia) | (1 << ib)
    return _Branch(bitmap, (a, b) if ia < ib else (b, a))


def _find(node: Any, h: int, key: Any) -> Any:
    shift = 0
    while node is not None:
        if isinstance(node, _Branch):
            bit = 1 << ((h >> shift) & _MASK)
            if not node.bitmap & bit:
                return _MISSING
            node = node.slots[_slot(node.bitmap, bit)]
            shift += _BITS
        elif isinstance(node, _Leaf):
            return node.value if node.hash == h and node.key == key else _MISSING
        else:
            if node.hash == h:
                for stored_key, value in node.pairs:
                    if stored_key == key:
                        return value
            return _MISSING
    return _MISSING


def _assoc(node: Any, shift: int, h: int, key: Any, value: Any) -> tuple[Any, bool]:
    """Return ``(new_node, added)``; ``new_node is node`` when nothing changed."""
    if node is None:
        return _Leaf(h, key, value), True

    if isinstance(node, _Leaf):
        if node.hash != h:
            return _merge(node, _Leaf(h, key, value), shift), True
        if node.key == key:
            if node.value is value:
                return node, False
            return _Leaf(h, key, value), False
        return _Collision(h, ((node.key, node.value), (key, value))), True

    if isinstance(node, _Collision):
        if node.hash != h:
            return _merge(node, _Leaf(h, key, value), shift), True
        for idx, (stored_key, stored_value) in enumerate(node.pairs):
            if stored_key == key:
                if stored_value is value:
                    return node, False
                pairs = node.pairs[:idx] + ((key, value),) + node.pairs[idx + 1 :]
                return _Collision(h, pairs), False
        return _Collision(h, node.pairs + ((key, value),)), True

    bit = 1 << ((h >> shift) & _MASK)
    idx = _slot(node.bitmap, bit)
    if not node.bitmap & bit:
        slots = node.slots[:idx] + (_Leaf(h, key, value),) + node.slots[idx:]
        return _Branch(node.bitmap | bit, slots), True

    child = node.slots[idx]
    new_child, added = _assoc(child, shift + _BITS, h, key, value)
    if new_child is child:
        return node, False
    return _Branch(node.bitmap, node.slots[:idx] + (new_child,) + node.slots[idx + 1 :]), added


def _dissoc(node: Any, shift: int, h: int, key: Any) -> tuple[Any, bool]:
    """Return ``(new_node, removed)``; ``new_node`` is None when the node empties."""
    if node is None:
        return None, False

    if isinstance(node, _Leaf):
        if node.hash == h and node.key == key:
            return None, True
        return node, False

    if isinstance(node, _Collision):
        if node.hash != h:
            return node, False
        pairs = tuple(pair for pair in node.pairs if pair[0] != key)
        if len(pairs) == len(node.pairs):
            return node, False
        if len(pairs) == 1:
            return _Leaf(h, pairs[0][0], pairs[0][1]), True
        return _Collision(h, pairs), True

    bit = 1 << ((h >> shift) & _MASK)
    if not node.bitmap & bit:
        return node, False
    idx = _slot(node.bitmap, bit)
    child = node.slots[idx]
    new_child, removed = _dissoc(child, shift + _BITS, h, key)
    if not removed:
        return node, False

    if new_child is None:
        bitmap = node.bitmap ^ bit
        if not bitmap:
            return None, True
        slots = node.slots[:idx] + node.slots[idx + 1 :]
        # A lone terminal can move up a level: its hash prefix still matches the path
        if len(slots) == 1 and not isinstance(slots[0], _Branch):
            return slots[0], True
        return _Branch(bitmap, slots), True

    if len(node.slots) == 1 and not isinstance(new_child, _Branch):
        return new_child, True
    return _Branch(node.bitmap, node.slots[:idx] + (new_child,) + node.slots[idx + 1 :]), True


def _build(items: list[tuple[int, Any, Any]], shift: int) -> Any:
    """Bottom-up construction from ``(hash, key, value)`` triples with unique keys."""
    if len(items) == 1:
        h, key, value = items[0]
        return _Leaf(h, key, value)

    first_hash = items[0][0]
    if all(h == first_hash for h, _, _ in items):
        return _Collision(first_hash, tuple((key, value) for _, key, value in items))

    buckets: dict[int, list[tuple[int, Any, Any]]] = {}
    for item in items:
        buckets.setdefault((item[0] >> shift) & _MASK, []).append(item)

    bitmap = 0
    slots = []
    for chunk in sorted(buckets):
        bitmap |= 1 << chunk
        slots.append(_build(buckets[chunk], shift + _BITS))
    return _Branch(bitmap, tuple(slots))


def _walk(node: Any) -> Iterator[tuple[Any, Any]]:
    if node is None:
        return
    if isinstance(node, _Leaf):
        yield node.key, node.value
    elif isinstance(node, _Collision):
        yield from node.pairs
    else:
        for child in node.slots:
            yield from _walk(child)


def _root_from_pairs(pairs: Iterable[tuple[Any, Any]]) -> tuple[Any, int]:
    latest: dict[Any, Any] = {}
    for key, value in pairs:
        latest[key] = value
    if not latest:
        return None, 0
    return _build([(_hash(key), key, value) for key, value in latest.items()], 0), len(latest)


class PersistentMap(Mapping[K, V], Generic[K, V]):
    """Immutable mapping; ``set`` and ``delete`` return updated copies."""

    __slots__ = ("_root", "_size")

    def __init__(self, items: Mapping[K, V] | Iterable[tuple[K, V]] | None = None) -> None:
        if items is None:
            self._root, self._size = None, 0
        elif isinstance(items, PersistentMap):
            self._root, self._size = items._root, items._size
        else:
            pairs = items.items() if isinstance(items, Mapping) else items
            self._root, self._size = _root_from_pairs(pairs)

    @classmethod
    def _make(cls, root: Any, size: int) -> PersistentMap[K, V]:
        new = cls.__new__(cls)
        new._root = root
        new._size = size
        return new

    def __getitem__(self, key: K) -> V:
        value = _find(self._root, _hash(key), key)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def get(self, key: K, default: Any = None) -> Any:
        value = _find(self._root, _hash(key), key)
        return default if value is _MISSING else value

    def __contains__(self, key: object) -> bool:
        return _find(self._root, _hash(key), key) is not _MISSING

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[K]:
        for key, _ in _walk(self._root):
            yield key

    def items(self) -> Iterator[tuple[K, V]]:  # type: ignore[override]
        return _walk(self._root)

    def set(self, key: K, value: V) -> PersistentMap[K, V]:
        root, added = _assoc(self._root, 0, _hash(key), key, value)
        if root is self._root:
            return self
        return self._make(root, self._size + 1 if added else self._size)

    def delete(self, key: K) -> PersistentMap[K, V]:
        """Copy without ``key``; returns ``self`` when the key is absent."""
        root, removed = _dissoc(self._root, 0, _hash(key), key)
        if not removed:
            return self
        return self._make(root, self._size - 1)

    def __repr__(self) -> str:
        return f"PersistentMap(size={self._size})"


class PersistentSet(Set[K], Generic[K]):
    """Immutable set; ``add`` and ``discard`` return updated copies."""

    __slots__ = ("_root", "_size")

    def __init__(self, items: Iterable[K] = ()) -> None:
        self._root, self._size = _root_from_pairs((item, True) for item in items)

    @classmethod
    def _make(cls, root: Any, size: int) -> PersistentSet[K]:
        new = cls.__new__(cls)
        new._root = root
        new._size = size
        return new

    def __contains__(self, item: object) -> bool:
        return _find(self._root, _hash(item), item) is not _MISSING

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[K]:
        for key, _ in _walk(self._root):
            yield key

    def add(self, item: K) -> PersistentSet[K]:
        root, added = _assoc(self._root, 0, _hash(item), item, True)
        if not added:
            return self
        return self._make(root, self._size + 1)

    def discard(self, item: K) -> PersistentSet[K]:
        root, removed = _dissoc(self._root, 0, _hash(item), item)
        if not removed:
            return self
        return self._make(root, self._size - 1)

    def __repr__(self) -> str:
        return f"PersistentSet(size={self._size})"


EMPTY_SET: PersistentSet[str] = PersistentSet()
