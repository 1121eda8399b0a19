"""Unit tests for the in-memory content store."""

import threading

import pytest

from kb_search.adapters.content_store import AbstractContentStore, InMemoryContentStore
from kb_search.domain.model import ContentStatus, IndexEventType


@pytest.mark.unit
class TestInMemoryContentStore:
    """Reads and published events."""

    def test_abstract_store_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            AbstractContentStore()

    def test_list_all_published_skips_drafts(self, printer_documents):
        store = InMemoryContentStore(printer_documents)
        assert [doc.id for doc in store.list_all_published()] == ["1", "2"]

    def test_save_emits_created_then_updated(self, make_doc):
        store = InMemoryContentStore()
        events = []
        store.subscribe(events.append)

        store.save(make_doc(1, "printer"))
        store.save(make_doc(1, "printer offline"))

        assert [event.type for event in events] == [IndexEventType.CREATED, IndexEventType.UPDATED]
        assert store.get_document("1").title == "printer offline"

    def test_delete(self, make_doc):
        store = InMemoryContentStore([make_doc(1, "printer", status=ContentStatus.DRAFT)])
        events = []
        store.subscribe(events.append)

        assert store.delete("1").type is IndexEventType.DELETED
        assert store.delete("1") is None
        assert store.get_document("1") is None
        assert len(events) == 1

    def test_unsubscribe(self, make_doc):
        store = InMemoryContentStore()
        events = []
        store.subscribe(events.append)
        store.unsubscribe(events.append)
        store.save(make_doc(1, "printer"))
        assert events == []

    def test_concurrent_saves_emit_in_commit_order(self, make_doc):
        store = InMemoryContentStore()
        titles = []
        first_publishing = threading.Event()
        release = threading.Event()

        def subscriber(event):
            if event.document.title == "printer offline":
                first_publishing.set()
                release.wait(timeout=5)
            titles.append(event.document.title)

        store.subscribe(subscriber)
        first = threading.Thread(target=store.save, args=(make_doc(1, "printer offline"),))
        first.start()
        assert first_publishing.wait(timeout=5)

        second = threading.Thread(target=store.save, args=(make_doc(1, "printer jam"),))
        second.start()
        second.join(timeout=0.2)
        assert second.is_alive()

        release.set()
        first.join(timeout=5)
        second.join(timeout=5)
        assert titles == ["printer offline", "printer jam"]
        assert store.get_document("1").title == "printer jam"
