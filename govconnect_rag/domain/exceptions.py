"""
GovConnect RAG custom exception types

Specific exception types used across the retrieval pipeline, so callers can
distinguish a fatal retrieval failure from a recoverable LLM hiccup instead of
catching a broad `Exception`.

Usage:
    from govconnect_rag.domain.exceptions import RetrievalError, LLMAPIError

    try:
        candidates = await retriever.retrieve(query, options, intent)
    except RetrievalError as e:
        logger.error(f"Retrieval failed at {e.stage}: {e}")
"""

from enum import Enum
from typing import Any


class GovConnectRAGError(Exception):
    """
    Base exception for all GovConnect RAG errors.

    Catch this to handle every error raised by this package at once.
    """

    pass


class RetrievalError(GovConnectRAGError):
    """
    Fatal failure of the retrieval stage (embedding, vector or hybrid search).

    Attributes:
        stage: Pipeline stage that failed (e.g. "embedding", "vector_search")
        cause: Original upstream exception, if any
    """

    def __init__(self, message: str, stage: str = "retrieval", cause: Exception | None = None):
        super().__init__(message)
        self.stage = stage
        self.cause = cause


class LLMErrorKind(str, Enum):
    """Classification of a failed LLM call, drives the model call plan."""

    RATE_LIMITED = "rate_limited"  # 429 / quota: this model is at capacity
    INVALID_KEY = "invalid_key"  # 401 / bad credentials
    NOT_FOUND = "not_found"  # 404 / unknown model
    TRANSIENT = "transient"  # anything else, worth retrying


class LLMAPIError(GovConnectRAGError):
    """
    LLM API errors (rate limit, invalid key, model not found, timeout).

    Attributes:
        model: Model name used for the call
        error_code: Provider error code, if known
        kind: LLMErrorKind classification
    """

    def __init__(
        self,
        message: str,
        model: str | None = None,
        error_code: str | None = None,
        kind: LLMErrorKind = LLMErrorKind.TRANSIENT,
    ):
        super().__init__(message)
        self.model = model
        self.error_code = error_code
        self.kind = kind

    @property
    def is_retryable(self) -> bool:
        return self.kind == LLMErrorKind.TRANSIENT


class CandidateValidationError(GovConnectRAGError, ValueError):
    """
    A search candidate violated its invariants (e.g. score outside [0, 1]).

    Attributes:
        field: Offending field name
        value: Offending value
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class ConfigurationError(GovConnectRAGError):
    """Invalid or missing configuration."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []
