"""Tests for the exception hierarchy."""

from govconnect_rag.domain.exceptions import (
    CandidateValidationError,
    ConfigurationError,
    GovConnectRAGError,
    LLMAPIError,
    LLMErrorKind,
    RetrievalError,
)


def test_hierarchy():
    for cls in (RetrievalError, LLMAPIError, CandidateValidationError, ConfigurationError):
        assert issubclass(cls, GovConnectRAGError)
    assert issubclass(CandidateValidationError, ValueError)


def test_retrieval_error_carries_stage_and_cause():
    cause = RuntimeError("pgvector down")
    error = RetrievalError("Vector search failed", stage="vector_search", cause=cause)
    assert error.stage == "vector_search"
    assert error.cause is cause
    assert str(error) == "Vector search failed"


def test_llm_api_error_retryable():
    assert LLMAPIError("timeout").is_retryable
    assert not LLMAPIError("429", kind=LLMErrorKind.RATE_LIMITED).is_retryable


def test_configuration_error_errors_default():
    assert ConfigurationError("bad").errors == []
