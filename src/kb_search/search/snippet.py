"""Snippet extraction around a matched term.

A snippet is a window of ``window_chars`` characters on each side of the
first match, widened or narrowed to the nearest word boundary so words are
never cut in half. Text removed at either end is marked with an ellipsis.
"""

from __future__ import annotations

from collections.abc import Collection
import re

from kb_search.search.analyzers import Analyzer, Token


ELLIPSIS = "..."

_WHITESPACE = re.compile(r"\s")


def snap_to_word_start(text: str, position: int) -> int:
    """Move ``position`` forward to the start of the next whole word.

    Returns 0 unchanged, and ``position`` unchanged when it already sits on a
    word start.
    """
    if position <= 0:
        return 0
    if _WHITESPACE.match(text, position - 1):
        return position
    match = _WHITESPACE.search(text, position)
    return match.end() if match else position


def snap_to_word_end(text: str, position: int) -> int:
    """Move ``position`` back to the end of the previous whole word."""
    if position >= len(text):
        return len(text)
    if _WHITESPACE.match(text, position):
        return position
    boundary = max(text.rfind(" ", 0, position), text.rfind("\n", 0, position), text.rfind("\t", 0, position))
    return boundary if boundary > 0 else position


def extract_window(text: str, match_start: int, match_end: int, window_chars: int) -> str:
    """Cut ``text`` to ``window_chars`` around ``[match_start, match_end)``."""
    if not text:
        return ""

    start = max(0, match_start - window_chars)
    end = min(len(text), match_end + window_chars)
    snapped_start = snap_to_word_start(text, start)
    snapped_end = snap_to_word_end(text, end)
    # Never snap past the match itself
    if snapped_start <= match_start:
        start = snapped_start
    if snapped_end >= match_end:
        end = snapped_end

    snippet = text[start:end].strip()
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(text):
        snippet = snippet + ELLIPSIS
    return snippet


def highlight_terms_in_snippet(
    snippet: str,
    terms: Collection[str],
    analyzer: Analyzer,
    style: str = "plain",
    max_highlights: int = 3,
) -> str:
    """Mark snippet words whose analyzed form is one of ``terms``.

    Matching goes through the analyzer, so ``Printers`` is marked for the
    indexed term ``printer``. ``style`` is ``plain`` for ``[[word]]``, ``html``
    for ``<mark>word</mark>`` and ``none`` to leave the snippet untouched.
    """
    if style == "none" or not snippet or not terms:
        return snippet

    matches: list[Token] = [token for token in analyzer(snippet) if token.text in terms][:max_highlights]
    if not matches:
        return snippet

    result = snippet
    for token in reversed(matches):  # right to left keeps offsets valid
        original = result[token.start_char : token.end_char]
        replacement = f"<mark>{original}</mark>" if style == "html" else f"[[{original}]]"
        result = result[: token.start_char] + replacement + result[token.end_char :]
    return result


def build_field_snippet(
    text: str,
    field_position: int,
    terms: Collection[str],
    analyzer: Analyzer,
    *,
    window_chars: int = 60,
    style: str = "none",
    max_highlights: int = 3,
) -> str | None:
    """Build the snippet for one field around the token at ``field_position``.

    ``field_position`` is the analyzer position recorded in the posting,
    relative to the start of the field. Returns None when the position does
    not exist in ``text`` (the stored text and the posting disagree).
    """
    if not text:
        return None
    tokens = analyzer(text)
    if not 0 <= field_position < len(tokens):
        return None

    anchor = tokens[field_position]
    snippet = extract_window(text, anchor.start_char, anchor.end_char, window_chars)
    return highlight_terms_in_snippet(snippet, terms, analyzer, style=style, max_highlights=max_highlights)
