"""Analyzer utilities for the knowledge base index.

Analyzers are composed from a tokenizer and a chain of token filters. The
same analyzer instance must be used for indexing and for querying, otherwise
query terms never line up with indexed terms.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, MutableMapping, Sequence
from dataclasses import dataclass, field
import re
from typing import TYPE_CHECKING, Any, Protocol


if TYPE_CHECKING:
    from kb_search.config import AnalyzerConfig


@dataclass
class Token:
    """Represents a token emitted by analyzers."""

    text: str
    position: int
    start_char: int
    end_char: int
    attributes: MutableMapping[str, Any] = field(default_factory=dict)

    def copy_with(self, **updates: Any) -> Token:
        data = {
            "text": self.text,
            "position": self.position,
            "start_char": self.start_char,
            "end_char": self.end_char,
            "attributes": dict(self.attributes),
        }
        data.update(updates)
        return Token(**data)


class Analyzer(Protocol):
    """Protocol implemented by analyzers."""

    def __call__(self, text: str) -> list[Token]:  # pragma: no cover - interface definition
        ...


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class RegexTokenizer:
    """Splits text on Unicode word boundaries."""

    def __init__(self, pattern: str = r"[\w']+", flags: int = re.UNICODE | re.MULTILINE) -> None:
        self.pattern = re.compile(pattern, flags)

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self.pattern.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class LowercaseFilter:
    """Case-folds token text (handles ß, Turkish dotless i and friends)."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            folded = token.text.casefold()
            yield token if folded == token.text else token.copy_with(text=folded)


class PunctuationFilter:
    """Strips apostrophes and underscores that the word pattern lets through.

    Leading/trailing marks are trimmed and inner apostrophes removed, so
    ``don't`` becomes ``dont`` and ``'quoted'`` becomes ``quoted``.
    """

    _STRIP = "'_"

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            cleaned = token.text.strip(self._STRIP).replace("'", "")
            if not cleaned:
                continue
            yield token if cleaned == token.text else token.copy_with(text=cleaned)


class MinLengthFilter:
    """Drops tokens shorter than ``min_length`` characters."""

    def __init__(self, min_length: int = 2) -> None:
        self.min_length = min_length

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if len(token.text) >= self.min_length:
                yield token


DEFAULT_STOPWORDS = [
    "a",
    "an",
    "and",
    "are",
    "as",
    "at",
    "be",
    "but",
    "by",
    "for",
    "if",
    "in",
    "into",
    "is",
    "it",
    "no",
    "not",
    "of",
    "on",
    "or",
    "such",
    "that",
    "the",
    "their",
    "then",
    "there",
    "these",
    "they",
    "this",
    "to",
    "was",
    "will",
    "with",
]


class StopFilter:
    """Removes stopwords from the stream."""

    def __init__(self, stopwords: Sequence[str] | None = None) -> None:
        vocab = stopwords if stopwords is not None else DEFAULT_STOPWORDS
        self.stopwords = frozenset(word.casefold() for word in vocab)

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text not in self.stopwords:
                yield token


# Ordered longest-first; the first matching rule wins.
_SUFFIX_RULES: tuple[tuple[str, str], ...] = (
    ("ization", "ize"),
    ("ational", "ate"),
    ("fulness", "ful"),
    ("ousness", "ous"),
    ("iveness", "ive"),
    ("tional", "tion"),
    ("ations", "ate"),
    ("ation", "ate"),
    ("ments", ""),
    ("ment", ""),
    ("ness", ""),
)

_SIMPLE_SUFFIXES: tuple[str, ...] = ("ingly", "edly", "ing", "ies", "ed", "ly", "es", "s")

_MIN_STEM = 3


class StemFilter:
    """Light suffix stemmer so ``printers``/``printing`` meet ``printer``/``print``."""

    def __init__(self) -> None:
        self._stem = _build_stemmer()

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            stemmed = self._stem(token.text)
            yield token if stemmed == token.text else token.copy_with(text=stemmed)


def _build_stemmer() -> Callable[[str], str]:
    def stem(word: str) -> str:
        if not word.isalpha():
            return word
        for suffix, replacement in _SUFFIX_RULES:
            if word.endswith(suffix) and len(word) - len(suffix) >= _MIN_STEM:
                return word[: -len(suffix)] + replacement
        for suffix in _SIMPLE_SUFFIXES:
            if word.endswith(suffix) and len(word) - len(suffix) >= _MIN_STEM:
                if suffix == "ies":
                    return word[:-3] + "y"
                if suffix == "es" and not word[:-2].endswith(("s", "x", "z", "ch", "sh")):
                    return word[:-1]
                if suffix == "s" and word.endswith("ss"):
                    return word
                return word[: -len(suffix)]
        return word

    return stem


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters)."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> list[Token]:
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        tokens = list(stream)
        for idx, token in enumerate(tokens):  # dense positions after filtering
            token.position = idx
        return tokens


class StandardAnalyzer:
    """Default analyzer for titles, summaries, bodies and queries."""

    def __init__(
        self,
        *,
        stopwords: Sequence[str] | None = None,
        min_token_length: int = 2,
        apply_stemming: bool = True,
    ) -> None:
        filters: list[TokenFilter] = [
            LowercaseFilter(),
            PunctuationFilter(),
            MinLengthFilter(min_token_length),
            StopFilter(stopwords),
        ]
        if apply_stemming:
            filters.append(StemFilter())
        self.pipeline = AnalyzerPipeline(RegexTokenizer(), filters)

    def __call__(self, text: str) -> list[Token]:
        if not text:
            return []
        return self.pipeline(text)

    def analyze(self, text: str) -> list[tuple[str, int]]:
        """Return ``(term, position)`` pairs in position order."""
        return [(token.text, token.position) for token in self(text)]


class KeywordAnalyzer:
    """Analyzer that treats the entire input as a single case-folded token."""

    def __call__(self, text: str) -> list[Token]:
        stripped = text.strip() if text else ""
        if not stripped:
            return []
        start = text.index(stripped)
        return [Token(text=stripped.casefold(), position=0, start_char=start, end_char=start + len(stripped))]


def _standard_analyzer(config: AnalyzerConfig | None) -> Analyzer:
    if config is None:
        return StandardAnalyzer()
    return StandardAnalyzer(
        stopwords=config.stopwords,
        min_token_length=config.min_token_length,
        apply_stemming=config.apply_stemming,
    )


_ANALYZER_FACTORIES: dict[str, Callable[[AnalyzerConfig | None], Analyzer]] = {
    "standard": _standard_analyzer,
    "keyword": lambda config: KeywordAnalyzer(),
}


def get_analyzer(name: str | None, config: AnalyzerConfig | None = None) -> Analyzer:
    """Return analyzer by name, defaulting to the standard analyzer.

    ``config`` supplies stopwords, minimum length and stemming to analyzers
    that use them; the keyword analyzer ignores it.
    """

    normalized = (name or "standard").lower()
    if normalized not in _ANALYZER_FACTORIES:
        msg = f"Unknown analyzer '{name}'. Available: {sorted(_ANALYZER_FACTORIES)}"
        raise ValueError(msg)
    return _ANALYZER_FACTORIES[normalized](config)


def build_analyzer(config: AnalyzerConfig) -> Analyzer:
    """Build the analyzer selected by ``config.name``."""

    return get_analyzer(config.name, config)


_DEFAULT_ANALYZER = StandardAnalyzer()


def analyze(text: str) -> list[tuple[str, int]]:
    """Analyze ``text`` with the default settings into ``(term, position)`` pairs."""

    return _DEFAULT_ANALYZER.analyze(text)
