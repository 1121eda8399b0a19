"""Unit tests for the persistent map and set."""

import pytest

from kb_search.search.persistent import EMPTY_SET, PersistentMap, PersistentSet


class _SameHash:
    """Key whose hash collides with every other instance."""

    def __init__(self, name):
        self.name = name

    def __hash__(self):
        return 7

    def __eq__(self, other):
        return isinstance(other, _SameHash) and other.name == self.name


@pytest.mark.unit
class TestPersistentMap:
    """Updates return new versions and never touch old ones."""

    def test_set_and_get(self):
        empty = PersistentMap()
        one = empty.set("printer", 1)
        assert one["printer"] == 1
        assert one.get("missing", 0) == 0
        assert "printer" in one
        assert len(empty) == 0
        assert len(one) == 1

    def test_old_versions_unchanged(self):
        base = PersistentMap({f"doc-{i}": i for i in range(500)})
        updated = base.set("doc-7", 700).delete("doc-8").set("doc-new", 1)

        assert base["doc-7"] == 7
        assert "doc-8" in base
        assert "doc-new" not in base
        assert updated["doc-7"] == 700
        assert "doc-8" not in updated
        assert len(base) == 500
        assert len(updated) == 500

    def test_bulk_build_matches_incremental(self):
        pairs = {f"term-{i}": i for i in range(2000)}
        incremental = PersistentMap()
        for key, value in pairs.items():
            incremental = incremental.set(key, value)
        assert PersistentMap(pairs) == incremental
        assert dict(incremental.items()) == pairs

    def test_delete_everything_leaves_empty_map(self):
        current = PersistentMap({str(i): i for i in range(300)})
        for i in range(300):
            current = current.delete(str(i))
        assert len(current) == 0
        assert list(current) == []

    def test_unchanged_updates_return_same_instance(self):
        value = object()
        base = PersistentMap({"a": value})
        assert base.set("a", value) is base
        assert base.delete("missing") is base

    def test_hash_collisions(self):
        first, second, third = _SameHash("a"), _SameHash("b"), _SameHash("c")
        collided = PersistentMap().set(first, 1).set(second, 2).set(third, 3)
        assert collided[second] == 2
        without_second = collided.delete(second)
        assert second not in without_second
        assert without_second[first] == 1
        assert without_second[third] == 3
        assert without_second.delete(first).delete(third) == PersistentMap()

    def test_missing_key_raises(self):
        with pytest.raises(KeyError):
            PersistentMap()["nope"]


@pytest.mark.unit
class TestPersistentSet:
    """Facet membership sets."""

    def test_add_and_discard(self):
        ids = EMPTY_SET.add("1").add("2")
        assert ids == {"1", "2"}
        assert ids.discard("1") == {"2"}
        assert "1" in ids
        assert len(EMPTY_SET) == 0

    def test_repeated_add_returns_same_instance(self):
        ids = PersistentSet(["1"])
        assert ids.add("1") is ids
        assert ids.discard("2") is ids
