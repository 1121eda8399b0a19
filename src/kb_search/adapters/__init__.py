"""Adapters between the search core and the systems around it."""

from kb_search.adapters.content_store import AbstractContentStore, InMemoryContentStore


__all__ = ["AbstractContentStore", "InMemoryContentStore"]
