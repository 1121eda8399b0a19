"""Unit tests for the inverted index."""

import pytest

from kb_search.errors import IndexInconsistency, QueryTimeout
from kb_search.search.deadline import Deadline
from kb_search.search.inverted_index import InvertedIndex
from kb_search.search.models import Posting, PostingList


def _plist(*doc_ids):
    return PostingList(tuple(Posting(doc_id=doc_id, frequency=1, positions=(0,)) for doc_id in doc_ids))


@pytest.fixture
def index():
    idx = InvertedIndex()
    idx.add_document("1", {"printer": (0,), "offline": (1,)})
    idx.add_document("2", {"printer": (0,), "jam": (1,)})
    idx.add_document("3", {"offline": (0, 4), "network": (2,)})
    return idx


@pytest.mark.unit
class TestInvertedIndexMutation:
    """Adding and removing postings."""

    def test_add_document_populates_both_directions(self, index):
        assert index.get_posting_list("printer").doc_ids == ("1", "2")
        assert index.terms_for("3") == frozenset({"offline", "network"})
        assert index.document_frequency("offline") == 2
        assert index.vocabulary_size == 4
        assert index.document_count == 3

    def test_add_document_twice_raises(self, index):
        with pytest.raises(IndexInconsistency):
            index.add_document("1", {"printer": (0,)})

    def test_add_posting_builds_reverse_entry(self):
        idx = InvertedIndex()
        idx.add_posting("vpn", "9", 2, (0, 3))
        idx.add_posting("setup", "9", 1, (1,))
        assert idx.terms_for("9") == frozenset({"vpn", "setup"})
        assert idx.get_posting_list("vpn").get("9").positions == (0, 3)

    def test_remove_postings_uses_reverse_index(self, index):
        assert index.remove_postings("2") == 2
        assert "jam" not in index
        assert index.get_posting_list("printer").doc_ids == ("1",)
        assert index.terms_for("2") == frozenset()

    def test_remove_unknown_document_is_noop(self, index):
        before = index.fingerprint()
        assert index.remove_postings("missing") == 0
        assert index.fingerprint() == before

    def test_remove_then_add_restores_state(self, index):
        before = index.to_dict()
        index.remove_postings("3")
        index.add_document("3", {"offline": (0, 4), "network": (2,)})
        assert index.to_dict() == before

    def test_remove_with_missing_posting_raises(self, index):
        index._postings = index._postings.set("jam", _plist())  # corrupt: reverse still lists "jam" for doc 2
        with pytest.raises(IndexInconsistency) as exc_info:
            index.remove_postings("2")
        assert exc_info.value.document_id == "2"

    def test_purge_drops_orphan_postings(self, index):
        index._reverse = index._reverse.delete("1")  # orphan the postings of doc 1
        assert index.purge("1") == 2
        assert "1" not in index.get_posting_list("printer")
        assert "1" not in index.get_posting_list("offline")

    def test_verify_document_detects_mismatch(self, index):
        index._postings = index._postings.set("network", _plist())
        with pytest.raises(IndexInconsistency):
            index.verify_document("3")

    def test_fork_isolates_mutations(self, index):
        fork = index.fork()
        fork.remove_postings("1")
        assert index.get_posting_list("printer").doc_ids == ("1", "2")
        assert fork.get_posting_list("printer").doc_ids == ("2",)

    def test_unknown_term_returns_empty_list(self, index):
        assert len(index.get_posting_list("scanner")) == 0
        assert index.document_frequency("scanner") == 0


@pytest.mark.unit
class TestBulkLoad:
    """Cold-start construction."""

    def test_bulk_load_matches_incremental(self, index):
        loaded = InvertedIndex.bulk_load(
            [
                ("3", {"offline": (0, 4), "network": (2,)}),
                ("1", {"printer": (0,), "offline": (1,)}),
                ("2", {"printer": (0,), "jam": (1,)}),
            ]
        )
        assert loaded.fingerprint() == index.fingerprint()
        assert loaded.to_dict() == index.to_dict()

    def test_bulk_load_last_duplicate_wins(self):
        loaded = InvertedIndex.bulk_load([("1", {"old": (0,)}), ("1", {"new": (0,)})])
        assert "old" not in loaded
        assert loaded.terms_for("1") == frozenset({"new"})

    def test_bulk_load_document_without_terms(self):
        loaded = InvertedIndex.bulk_load([("1", {})])
        assert loaded.document_count == 0
        assert loaded.vocabulary_size == 0


@pytest.mark.unit
class TestSetOperations:
    """Intersection and union of posting lists."""

    def test_intersect(self):
        result = InvertedIndex.intersect([_plist("1", "2", "5", "9"), _plist("2", "3", "9"), _plist("0", "2", "9")])
        assert result == ["2", "9"]

    def test_intersect_with_empty_list_is_empty(self):
        assert InvertedIndex.intersect([_plist("1", "2"), _plist()]) == []

    def test_intersect_no_lists(self):
        assert InvertedIndex.intersect([]) == []

    def test_union_deduplicates_in_order(self):
        assert InvertedIndex.union([_plist("1", "3"), _plist("2", "3"), _plist()]) == ["1", "2", "3"]

    def test_intersect_checks_deadline(self):
        big = _plist(*[f"{i:06d}" for i in range(10_000)])
        expired = Deadline(0)
        with pytest.raises(QueryTimeout) as exc_info:
            InvertedIndex.intersect([big, big], expired)
        assert exc_info.value.stage == "posting intersection"


@pytest.mark.unit
class TestFingerprint:
    """Canonical state digests."""

    def test_insertion_order_does_not_matter(self):
        left = InvertedIndex()
        left.add_document("a", {"x": (0,), "y": (1,)})
        left.add_document("b", {"x": (0,)})
        right = InvertedIndex()
        right.add_document("b", {"x": (0,)})
        right.add_document("a", {"y": (1,), "x": (0,)})
        assert left.fingerprint() == right.fingerprint()

    def test_positions_change_fingerprint(self):
        left = InvertedIndex()
        left.add_document("a", {"x": (0,)})
        right = InvertedIndex()
        right.add_document("a", {"x": (1,)})
        assert left.fingerprint() != right.fingerprint()
