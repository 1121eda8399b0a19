"""Unit tests for configuration loading."""

from pydantic import ValidationError
import pytest

from kb_search.config import AnalyzerConfig, SearchRankingConfig, SearchSnippetConfig, Settings


@pytest.mark.unit
class TestSettings:
    """Environment-driven settings."""

    def test_defaults(self, monkeypatch):
        for key in ["KB_SEARCH_QUERY_TIMEOUT_MS", "KB_SEARCH_WRITE_QUEUE_SIZE", "KB_SEARCH_SUBMIT_TIMEOUT_SECONDS"]:
            monkeypatch.delenv(key)
        settings = Settings()
        assert settings.default_page_size == 20
        assert settings.max_page_size == 100
        assert settings.query_timeout_ms == 250
        assert settings.write_queue_size == 1024
        assert settings.ranking.bm25_k1 == 1.2
        assert settings.ranking.bm25_b == 0.75
        assert settings.ranking.match_mode == "all"
        assert settings.snippet.style == "none"

    def test_env_prefix(self):
        assert Settings().index_name == "test"
        assert Settings().query_timeout_ms == 5000

    def test_nested_env_override(self, monkeypatch):
        monkeypatch.setenv("KB_SEARCH_RANKING__BM25_K1", "1.5")
        monkeypatch.setenv("KB_SEARCH_SNIPPET__STYLE", "html")
        settings = Settings()
        assert settings.ranking.bm25_k1 == 1.5
        assert settings.snippet.style == "html"

    def test_default_page_size_cannot_exceed_max(self):
        with pytest.raises(ValidationError, match="default_page_size"):
            Settings(default_page_size=50, max_page_size=10)

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="verbose")


@pytest.mark.unit
class TestNestedConfigs:
    """Bounds on the nested groups."""

    @pytest.mark.parametrize("k1", [0.1, 5.0])
    def test_k1_bounds(self, k1):
        with pytest.raises(ValidationError):
            SearchRankingConfig(bm25_k1=k1)

    def test_analyzer_name_from_env(self, monkeypatch):
        monkeypatch.setenv("KB_SEARCH_ANALYZER__NAME", "keyword")
        assert Settings().analyzer.name == "keyword"

    def test_unknown_analyzer_name(self):
        with pytest.raises(ValidationError):
            AnalyzerConfig(name="klingon")

    def test_unknown_match_mode(self):
        with pytest.raises(ValidationError):
            SearchRankingConfig(match_mode="some")

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            SearchSnippetConfig(colour="red")

    def test_stopwords_normalized(self):
        config = AnalyzerConfig(stopwords=["The", " the ", "", "OF"])
        assert config.stopwords == ["the", "of"]
