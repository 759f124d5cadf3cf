"""
Centralized Configuration Manager
=================================
Runtime configuration of the retrieval core.

Features:
- Load settings from environment variables (optionally from a `.env` file)
- Validate settings at startup (validate)
- Every value falls back to the tuned defaults in shared/constants.py
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from govconnect_rag.domain.exceptions import ConfigurationError
from govconnect_rag.shared.constants import (
    CONFLICT_THRESHOLD,
    DEFAULT_EXPANSION_MODELS,
    DEFAULT_MIN_SCORE,
    DEFAULT_TOP_K,
    DUPLICATE_THRESHOLD,
    EXPANSION_CACHE_SIZE,
    EXPANSION_CACHE_TTL_SECONDS,
    LLM_TIMEOUT_SECONDS,
    MAX_CONTEXT_LENGTH,
    MAX_ENTRY_LENGTH,
    MAX_RETRIES_PER_MODEL,
    MIN_EFFECTIVE_SCORE,
)

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "gemini/text-embedding-004"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def _env_list(name: str, default: tuple[str, ...]) -> list[str]:
    raw = os.environ.get(name, "")
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return items or list(default)


@dataclass
class RAGConfig:
    """
    Retrieval core settings.

    Loaded from environment variables; every field has a hardcoded fallback.
    """

    # Retrieval
    default_top_k: int = DEFAULT_TOP_K
    default_min_score: float = DEFAULT_MIN_SCORE
    min_effective_score: float = MIN_EFFECTIVE_SCORE

    # Context assembly
    max_context_length: int = MAX_CONTEXT_LENGTH
    max_entry_length: int = MAX_ENTRY_LENGTH

    # Dedup / conflicts
    duplicate_threshold: float = DUPLICATE_THRESHOLD
    conflict_threshold: float = CONFLICT_THRESHOLD

    # Delegated LLM calls
    expansion_models: list[str] = field(default_factory=lambda: list(DEFAULT_EXPANSION_MODELS))
    max_retries_per_model: int = MAX_RETRIES_PER_MODEL
    llm_timeout_seconds: float = LLM_TIMEOUT_SECONDS
    expansion_cache_ttl_seconds: float = EXPANSION_CACHE_TTL_SECONDS
    expansion_cache_size: int = EXPANSION_CACHE_SIZE
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_cache_path: str | None = None  # SQLite file; None keeps embeddings in memory

    # API Keys (from env)
    gemini_api_key: str | None = None
    openai_api_key: str | None = None

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "RAGConfig":
        """
        Load settings from environment variables.

        Args:
            env_file: Optional `.env` file loaded first (existing variables win)
        """
        if env_file is not None:
            load_dotenv(env_file, override=False)

        return cls(
            default_top_k=_env_int("RAG_DEFAULT_TOP_K", DEFAULT_TOP_K),
            default_min_score=_env_float("RAG_DEFAULT_MIN_SCORE", DEFAULT_MIN_SCORE),
            min_effective_score=_env_float("RAG_MIN_EFFECTIVE_SCORE", MIN_EFFECTIVE_SCORE),
            max_context_length=_env_int("RAG_MAX_CONTEXT_LENGTH", MAX_CONTEXT_LENGTH),
            max_entry_length=_env_int("RAG_MAX_ENTRY_LENGTH", MAX_ENTRY_LENGTH),
            duplicate_threshold=_env_float("RAG_DUPLICATE_THRESHOLD", DUPLICATE_THRESHOLD),
            conflict_threshold=_env_float("RAG_CONFLICT_THRESHOLD", CONFLICT_THRESHOLD),
            expansion_models=_env_list("MICRO_NLU_MODELS", DEFAULT_EXPANSION_MODELS),
            max_retries_per_model=_env_int("RAG_MAX_RETRIES_PER_MODEL", MAX_RETRIES_PER_MODEL),
            llm_timeout_seconds=_env_float("RAG_LLM_TIMEOUT_SECONDS", LLM_TIMEOUT_SECONDS),
            expansion_cache_ttl_seconds=_env_float(
                "RAG_EXPANSION_CACHE_TTL_SECONDS", EXPANSION_CACHE_TTL_SECONDS
            ),
            expansion_cache_size=_env_int("RAG_EXPANSION_CACHE_SIZE", EXPANSION_CACHE_SIZE),
            embedding_model=os.environ.get("RAG_EMBEDDING_MODEL") or DEFAULT_EMBEDDING_MODEL,
            embedding_cache_path=os.environ.get("RAG_EMBEDDING_CACHE_PATH") or None,
            gemini_api_key=os.environ.get("GEMINI_API_KEY"),
            openai_api_key=os.environ.get("OPENAI_API_KEY"),
        )

    @property
    def api_keys(self) -> list[str]:
        return [k for k in (self.gemini_api_key, self.openai_api_key) if k]

    def validate(self) -> list[str]:
        """Validate settings.

        Returns:
            Error messages (empty list = valid)
        """
        errors: list[str] = []
        warnings: list[str] = []

        if not self.api_keys:
            warnings.append(
                "Neither GEMINI_API_KEY nor OPENAI_API_KEY is set; query expansion is disabled"
            )

        if self.default_top_k < 1:
            errors.append(f"RAG_DEFAULT_TOP_K must be >= 1, got {self.default_top_k}")

        for name, value in (
            ("RAG_DEFAULT_MIN_SCORE", self.default_min_score),
            ("RAG_MIN_EFFECTIVE_SCORE", self.min_effective_score),
            ("RAG_DUPLICATE_THRESHOLD", self.duplicate_threshold),
            ("RAG_CONFLICT_THRESHOLD", self.conflict_threshold),
        ):
            if not 0.0 <= value <= 1.0:
                errors.append(f"{name} must be within [0, 1], got {value}")

        if self.conflict_threshold >= self.duplicate_threshold:
            errors.append(
                "RAG_CONFLICT_THRESHOLD must be lower than RAG_DUPLICATE_THRESHOLD "
                f"({self.conflict_threshold} >= {self.duplicate_threshold})"
            )

        if self.max_entry_length < 4:
            errors.append(f"RAG_MAX_ENTRY_LENGTH must be >= 4, got {self.max_entry_length}")
        if self.max_context_length < self.max_entry_length:
            errors.append(
                "RAG_MAX_CONTEXT_LENGTH must be >= RAG_MAX_ENTRY_LENGTH "
                f"({self.max_context_length} < {self.max_entry_length})"
            )

        if self.max_retries_per_model < 1:
            errors.append(
                f"RAG_MAX_RETRIES_PER_MODEL must be >= 1, got {self.max_retries_per_model}"
            )
        if self.llm_timeout_seconds <= 0:
            errors.append(f"RAG_LLM_TIMEOUT_SECONDS must be > 0, got {self.llm_timeout_seconds}")
        if self.expansion_cache_size < 1:
            errors.append(f"RAG_EXPANSION_CACHE_SIZE must be >= 1, got {self.expansion_cache_size}")

        for w in warnings:
            logger.warning(f"[Config Warning] {w}")

        return errors

    @classmethod
    def from_env_validated(
        cls, fail_fast: bool = True, env_file: str | Path | None = None
    ) -> "RAGConfig":
        """Load settings from the environment and validate them.

        Args:
            fail_fast: Raise on validation errors; otherwise log and return the config

        Raises:
            ConfigurationError: fail_fast=True and validation failed
        """
        config = cls.from_env(env_file)
        errors = config.validate()

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            if fail_fast:
                raise ConfigurationError(error_msg, errors=errors)
            logger.error(error_msg)

        return config

    def to_dict(self) -> dict[str, Any]:
        """Secrets are reported as presence flags only."""
        return {
            "default_top_k": self.default_top_k,
            "default_min_score": self.default_min_score,
            "min_effective_score": self.min_effective_score,
            "max_context_length": self.max_context_length,
            "max_entry_length": self.max_entry_length,
            "duplicate_threshold": self.duplicate_threshold,
            "conflict_threshold": self.conflict_threshold,
            "expansion_models": list(self.expansion_models),
            "max_retries_per_model": self.max_retries_per_model,
            "llm_timeout_seconds": self.llm_timeout_seconds,
            "expansion_cache_ttl_seconds": self.expansion_cache_ttl_seconds,
            "expansion_cache_size": self.expansion_cache_size,
            "embedding_model": self.embedding_model,
            "embedding_cache_path": self.embedding_cache_path,
            "has_gemini_api_key": bool(self.gemini_api_key),
            "has_openai_api_key": bool(self.openai_api_key),
        }
