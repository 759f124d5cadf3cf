"""Tests for RAGConfig loading and validation."""

import os

import pytest

from govconnect_rag.domain.exceptions import ConfigurationError
from govconnect_rag.infrastructure.config.config_manager import RAGConfig

ENV_VARS = [
    "RAG_DEFAULT_TOP_K",
    "RAG_DEFAULT_MIN_SCORE",
    "RAG_MIN_EFFECTIVE_SCORE",
    "RAG_MAX_CONTEXT_LENGTH",
    "RAG_MAX_ENTRY_LENGTH",
    "RAG_DUPLICATE_THRESHOLD",
    "RAG_CONFLICT_THRESHOLD",
    "MICRO_NLU_MODELS",
    "RAG_MAX_RETRIES_PER_MODEL",
    "RAG_LLM_TIMEOUT_SECONDS",
    "RAG_EXPANSION_CACHE_TTL_SECONDS",
    "RAG_EXPANSION_CACHE_SIZE",
    "RAG_EMBEDDING_MODEL",
    "RAG_EMBEDDING_CACHE_PATH",
    "GEMINI_API_KEY",
    "OPENAI_API_KEY",
]


@pytest.fixture
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


class TestFromEnv:
    def test_defaults(self, clean_env):
        config = RAGConfig.from_env()

        assert config.default_top_k == 8
        assert config.default_min_score == 0.65
        assert config.min_effective_score == 0.45
        assert config.duplicate_threshold == 0.70
        assert config.conflict_threshold == 0.35
        assert config.max_context_length == 5000
        assert config.expansion_cache_ttl_seconds == 900
        assert config.api_keys == []
        assert config.embedding_cache_path is None

    def test_overrides(self, clean_env):
        clean_env.setenv("RAG_DEFAULT_TOP_K", "5")
        clean_env.setenv("RAG_DEFAULT_MIN_SCORE", "0.7")
        clean_env.setenv("MICRO_NLU_MODELS", "gemini/a, gemini/b ,")
        clean_env.setenv("GEMINI_API_KEY", "AIza-test")
        clean_env.setenv("RAG_EMBEDDING_CACHE_PATH", "data/embeddings.db")

        config = RAGConfig.from_env()

        assert config.default_top_k == 5
        assert config.default_min_score == 0.7
        assert config.expansion_models == ["gemini/a", "gemini/b"]
        assert config.api_keys == ["AIza-test"]
        assert config.embedding_cache_path == "data/embeddings.db"

    def test_invalid_number(self, clean_env):
        clean_env.setenv("RAG_DEFAULT_TOP_K", "delapan")
        with pytest.raises(ConfigurationError):
            RAGConfig.from_env()

    def test_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("RAG_MAX_CONTEXT_LENGTH=3000\n", encoding="utf-8")

        try:
            config = RAGConfig.from_env(env_file)
        finally:
            # load_dotenv writes os.environ directly
            os.environ.pop("RAG_MAX_CONTEXT_LENGTH", None)
        assert config.max_context_length == 3000


class TestValidate:
    def test_defaults_valid(self):
        assert RAGConfig().validate() == []

    def test_conflict_must_be_below_duplicate(self):
        errors = RAGConfig(conflict_threshold=0.7, duplicate_threshold=0.7).validate()
        assert any("RAG_CONFLICT_THRESHOLD" in e for e in errors)

    def test_threshold_range(self):
        errors = RAGConfig(default_min_score=1.5).validate()
        assert any("RAG_DEFAULT_MIN_SCORE" in e for e in errors)

    def test_context_shorter_than_entry(self):
        errors = RAGConfig(max_context_length=100, max_entry_length=600).validate()
        assert any("RAG_MAX_CONTEXT_LENGTH" in e for e in errors)

    def test_from_env_validated_fail_fast(self, clean_env):
        clean_env.setenv("RAG_MAX_RETRIES_PER_MODEL", "0")
        with pytest.raises(ConfigurationError) as exc_info:
            RAGConfig.from_env_validated()
        assert exc_info.value.errors

    def test_from_env_validated_lenient(self, clean_env):
        clean_env.setenv("RAG_MAX_RETRIES_PER_MODEL", "0")
        config = RAGConfig.from_env_validated(fail_fast=False)
        assert config.max_retries_per_model == 0


def test_to_dict_hides_secrets():
    data = RAGConfig(gemini_api_key="AIza-secret").to_dict()
    assert data["has_gemini_api_key"] is True
    assert "AIza-secret" not in str(data)
