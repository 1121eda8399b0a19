"""Shared helpers for turning a content-store Document into index input."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import re
from types import MappingProxyType

from kb_search.domain.model import Document
from kb_search.search.analyzers import Analyzer


# Field order defines the shared position space: title, then summary, then body.
INDEXED_FIELDS: tuple[str, ...] = ("title", "summary", "body")

_MARKDOWN_SYNTAX = re.compile(r"[#*_`~\[\]()]")
_WHITESPACE = re.compile(r"\s+")


def normalize_body(text: str) -> str:
    """Project markdown body text to the plaintext form that gets indexed."""

    if not text:
        return ""
    return _WHITESPACE.sub(" ", _MARKDOWN_SYNTAX.sub(" ", text)).strip()


def field_texts(document: Document) -> dict[str, str]:
    return {
        "title": document.title.strip(),
        "summary": (document.summary or "").strip(),
        "body": normalize_body(document.body_text),
    }


@dataclass(frozen=True)
class AnalyzedDocument:
    """Terms of one document laid out in a single position space."""

    term_positions: Mapping[str, tuple[int, ...]]
    field_lengths: Mapping[str, int]
    stored_fields: Mapping[str, str]

    @property
    def length(self) -> int:
        return sum(self.field_lengths.values())


def analyze_document(analyzer: Analyzer, document: Document) -> AnalyzedDocument:
    """Analyze every indexed field, offsetting positions by the preceding fields' lengths."""

    texts = field_texts(document)
    positions: dict[str, list[int]] = {}
    lengths: dict[str, int] = {}
    offset = 0
    for field_name in INDEXED_FIELDS:
        tokens = analyzer(texts[field_name])
        for token in tokens:
            positions.setdefault(token.text, []).append(offset + token.position)
        lengths[field_name] = len(tokens)
        offset += len(tokens)

    return AnalyzedDocument(
        term_positions=MappingProxyType({term: tuple(pos) for term, pos in positions.items()}),
        field_lengths=MappingProxyType(lengths),
        stored_fields=MappingProxyType(texts),
    )


def field_for_position(field_lengths: Mapping[str, int], position: int) -> tuple[str, int] | None:
    """Map a document position to ``(field_name, position_within_field)``."""

    offset = 0
    for field_name in INDEXED_FIELDS:
        length = field_lengths.get(field_name, 0)
        if position < offset + length:
            return field_name, position - offset
        offset += length
    return None
