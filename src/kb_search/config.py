"""Centralized configuration for kb-search using Pydantic Settings."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kb_search.search.analyzers import DEFAULT_STOPWORDS


class SearchRankingConfig(BaseModel):
    """Ranking parameters with safe defaults."""

    model_config = {"extra": "forbid"}

    bm25_k1: Annotated[
        float,
        Field(
            ge=0.5,
            le=3.0,
            description="BM25 term-frequency saturation parameter",
            examples=[1.2],
        ),
    ] = 1.2

    bm25_b: Annotated[
        float,
        Field(
            ge=0.0,
            le=1.0,
            description="BM25 length normalization parameter",
            examples=[0.75],
        ),
    ] = 0.75

    match_mode: Annotated[
        Literal["all", "any"],
        Field(
            description="'all' requires every query term in a result; 'any' accepts documents matching at least one",
        ),
    ] = "all"

    topk_threshold: Annotated[
        int,
        Field(
            ge=0,
            description="Candidate count above which heap top-k selection replaces the full sort (0 disables)",
        ),
    ] = 0


class SearchSnippetConfig(BaseModel):
    """Highlight snippet preferences."""

    model_config = {"extra": "forbid"}

    window_chars: Annotated[
        int,
        Field(
            ge=20,
            le=500,
            description="Characters of context kept on each side of the first match",
        ),
    ] = 60

    style: Annotated[
        Literal["none", "plain", "html"],
        Field(
            description="Term marking: none leaves text untouched, plain wraps in [[ ]], html uses <mark>",
        ),
    ] = "none"

    max_highlights: Annotated[
        int,
        Field(
            ge=1,
            le=10,
            description="Maximum marked terms per snippet",
        ),
    ] = 3


class AnalyzerConfig(BaseModel):
    """Tokenizer and filter settings shared by indexing and querying."""

    model_config = {"extra": "forbid"}

    name: Annotated[
        Literal["standard", "keyword"],
        Field(description="standard tokenizes and stems; keyword indexes each field as one exact-match term"),
    ] = "standard"

    min_token_length: Annotated[int, Field(ge=1, le=10, description="Shortest token kept")] = 2

    stopwords: Annotated[
        list[str],
        Field(description="Terms dropped at analysis time"),
    ] = Field(default_factory=lambda: list(DEFAULT_STOPWORDS))

    apply_stemming: Annotated[bool, Field(description="Apply suffix stemming to tokens")] = True

    @field_validator("stopwords")
    @classmethod
    def normalize_stopwords(cls, value: list[str]) -> list[str]:
        """Casefold and de-duplicate stopwords while keeping their order."""
        seen: dict[str, None] = {}
        for word in value:
            stripped = word.strip().casefold()
            if stripped:
                seen.setdefault(stripped, None)
        return list(seen)


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Nested groups use a double underscore, e.g. ``KB_SEARCH_RANKING__BM25_K1=1.5``.
    """

    model_config = SettingsConfigDict(
        env_prefix="KB_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    ranking: SearchRankingConfig = Field(default_factory=SearchRankingConfig)
    snippet: SearchSnippetConfig = Field(default_factory=SearchSnippetConfig)
    analyzer: AnalyzerConfig = Field(default_factory=AnalyzerConfig)

    index_name: str = Field(default="kb", min_length=1, description="Label for this index in metrics and logs")

    # Pagination and query limits
    default_page_size: int = Field(default=20, ge=1, description="Page size when callers omit one")
    max_page_size: int = Field(default=100, ge=1, description="Largest page size accepted")
    max_query_length: int = Field(default=512, ge=1, description="Longest free-text query in characters")
    max_query_terms: int = Field(default=32, ge=1, description="Most analyzed terms allowed in one query")
    query_timeout_ms: float = Field(
        default=250.0,
        gt=0,
        description="Work budget for facet intersection and ranking of one query",
    )

    # Writer
    write_queue_size: int = Field(default=1024, ge=1, description="Bounded capacity of the index event queue")
    submit_timeout_seconds: float = Field(
        default=5.0,
        ge=0,
        description="How long producers block on a full queue before WriteQueueOverflow",
    )

    # Logging
    log_level: str = Field(default="info", pattern=r"^(debug|info|warning|error|critical)$")
    json_logs: bool = Field(default=True, description="Emit structured JSON logs")

    @model_validator(mode="after")
    def _check_page_sizes(self) -> "Settings":
        if self.default_page_size > self.max_page_size:
            raise ValueError(
                f"default_page_size ({self.default_page_size}) cannot exceed max_page_size ({self.max_page_size})"
            )
        return self
