"""Shared test fixtures and configuration."""

from datetime import datetime, timezone
import os
from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))


# Deterministic environment for every Settings() built during tests
TEST_ENV = {
    "KB_SEARCH_INDEX_NAME": "test",
    "KB_SEARCH_DEFAULT_PAGE_SIZE": "20",
    "KB_SEARCH_MAX_PAGE_SIZE": "100",
    "KB_SEARCH_QUERY_TIMEOUT_MS": "5000",
    "KB_SEARCH_WRITE_QUEUE_SIZE": "64",
    "KB_SEARCH_SUBMIT_TIMEOUT_SECONDS": "1",
    "KB_SEARCH_LOG_LEVEL": "info",
    "KB_SEARCH_JSON_LOGS": "false",
}


for key, value in TEST_ENV.items():
    os.environ[key] = value

# Now we can safely import config-dependent modules
from kb_search.adapters.content_store import InMemoryContentStore
from kb_search.config import Settings
from kb_search.domain.model import ContentStatus, ContentType, Document
from kb_search.engine import KnowledgeBaseSearch


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Drop stray KB_SEARCH_ overrides and restore the test defaults."""
    for key in list(os.environ):
        if key.startswith("KB_SEARCH_") and key not in TEST_ENV:
            monkeypatch.delenv(key, raising=False)
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


def make_document(doc_id, title, **overrides):
    """Build a published article with sensible defaults."""
    data = {
        "id": str(doc_id),
        "type": ContentType.ARTICLE,
        "title": title,
        "status": ContentStatus.PUBLISHED,
    }
    data.update(overrides)
    return Document.model_validate(data)


@pytest.fixture
def make_doc():
    return make_document


@pytest.fixture
def printer_documents():
    """The three printer documents used by the end-to-end scenarios."""
    return [
        make_document(1, "printer offline"),
        make_document(2, "printer jam"),
        make_document(3, "printer offline", status=ContentStatus.DRAFT),
    ]


@pytest.fixture
def dated_articles():
    """Three published articles with strictly increasing publishedAt."""
    return [
        make_document("a", "reset password", published_at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
        make_document("b", "change email", published_at=datetime(2024, 2, 1, tzinfo=timezone.utc)),
        make_document("c", "enable two factor", published_at=datetime(2024, 3, 1, tzinfo=timezone.utc)),
    ]


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def content_store():
    return InMemoryContentStore()


@pytest.fixture
def engine(content_store, settings):
    """Started engine over an empty in-memory content store."""
    search = KnowledgeBaseSearch(content_store, settings)
    search.start()
    yield search
    search.close()
