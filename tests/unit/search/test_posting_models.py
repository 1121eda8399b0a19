"""Unit tests for Posting and PostingList."""

import pytest

from kb_search.errors import IndexInconsistency
from kb_search.search.models import CHUNK_SIZE, EMPTY_POSTING_LIST, Posting, PostingList


@pytest.mark.unit
class TestPosting:
    """Posting invariants."""

    def test_valid_posting(self):
        posting = Posting(doc_id="1", frequency=2, positions=(0, 4))
        assert posting.to_dict() == {"doc_id": "1", "frequency": 2, "positions": [0, 4]}

    def test_frequency_must_match_positions(self):
        with pytest.raises(IndexInconsistency) as exc_info:
            Posting(doc_id="1", frequency=2, positions=(0,))
        assert exc_info.value.document_id == "1"

    def test_zero_frequency_rejected(self):
        with pytest.raises(IndexInconsistency):
            Posting(doc_id="1", frequency=0, positions=())

    def test_positions_strictly_increasing(self):
        with pytest.raises(IndexInconsistency):
            Posting(doc_id="1", frequency=2, positions=(3, 3))


@pytest.mark.unit
class TestPostingList:
    """Immutable sorted posting lists."""

    def test_with_posting_keeps_doc_id_order(self):
        plist = EMPTY_POSTING_LIST
        for doc_id in ["b", "c", "a"]:
            plist = plist.with_posting(Posting(doc_id=doc_id, frequency=1, positions=(0,)))
        assert plist.doc_ids == ("a", "b", "c")

    def test_with_posting_returns_new_list(self):
        original = PostingList((Posting(doc_id="a", frequency=1, positions=(0,)),))
        updated = original.with_posting(Posting(doc_id="b", frequency=1, positions=(0,)))
        assert len(original) == 1
        assert len(updated) == 2

    def test_duplicate_posting_raises(self):
        plist = PostingList((Posting(doc_id="a", frequency=1, positions=(0,)),))
        with pytest.raises(IndexInconsistency):
            plist.with_posting(Posting(doc_id="a", frequency=1, positions=(2,)))

    def test_unsorted_construction_rejected(self):
        with pytest.raises(ValueError):
            PostingList(
                (
                    Posting(doc_id="b", frequency=1, positions=(0,)),
                    Posting(doc_id="a", frequency=1, positions=(0,)),
                )
            )

    def test_get_and_contains(self):
        plist = PostingList(
            (
                Posting(doc_id="a", frequency=1, positions=(0,)),
                Posting(doc_id="c", frequency=2, positions=(1, 3)),
            )
        )
        assert plist.get("c").frequency == 2
        assert plist.get("b") is None
        assert "a" in plist
        assert "b" not in plist
        assert 1 not in plist

    def test_without(self):
        plist = PostingList((Posting(doc_id="a", frequency=1, positions=(0,)),))
        assert plist.without("missing") is None
        remaining = plist.without("a")
        assert remaining is not None
        assert not remaining


def _postings(count):
    return tuple(Posting(doc_id=f"{i:06d}", frequency=1, positions=(0,)) for i in range(count))


@pytest.mark.unit
class TestChunkedPostingList:
    """Large lists are updated chunk by chunk."""

    def test_insert_rebuilds_only_one_chunk(self):
        plist = PostingList.from_sorted(_postings(CHUNK_SIZE * 10))
        updated = plist.with_posting(Posting(doc_id="000300a", frequency=1, positions=(0,)))

        shared = sum(1 for old, new in zip(plist._chunks, updated._chunks) if old is new)
        assert len(updated._chunks) == len(plist._chunks)
        assert shared == len(plist._chunks) - 1
        assert len(updated) == len(plist) + 1
        assert "000300a" in updated
        assert "000300a" not in plist

    def test_order_kept_across_splits(self):
        plist = EMPTY_POSTING_LIST
        for i in reversed(range(CHUNK_SIZE * 3)):
            plist = plist.with_posting(Posting(doc_id=f"{i:06d}", frequency=1, positions=(0,)))
        assert plist.doc_ids == tuple(f"{i:06d}" for i in range(CHUNK_SIZE * 3))
        assert all(len(chunk) <= 2 * CHUNK_SIZE for chunk in plist._chunks)

    def test_removals_merge_underfull_chunks(self):
        plist = PostingList.from_sorted(_postings(CHUNK_SIZE * 4))
        for i in range(CHUNK_SIZE * 4):
            if i % 8:
                plist = plist.without(f"{i:06d}")
        assert len(plist) == CHUNK_SIZE // 2
        assert len(plist._chunks) < 4
        assert plist.doc_ids == tuple(f"{i:06d}" for i in range(0, CHUNK_SIZE * 4, 8))
        assert plist.get(f"{CHUNK_SIZE:06d}").doc_id == f"{CHUNK_SIZE:06d}"
        assert plist.get(f"{CHUNK_SIZE + 1:06d}") is None

    def test_equality_ignores_chunk_layout(self):
        built = PostingList(_postings(CHUNK_SIZE + 5))
        grown = EMPTY_POSTING_LIST
        for posting in _postings(CHUNK_SIZE + 5):
            grown = grown.with_posting(posting)
        assert built == grown
