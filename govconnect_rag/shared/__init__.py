"""
Shared utilities for the GovConnect RAG retrieval core.
"""

from .llm_client import LiteLLMTextGenerator, parse_json_response
from .llm_retry import CallAction, ModelCallPlan, classify_llm_error

__all__ = [
    "CallAction",
    "LiteLLMTextGenerator",
    "ModelCallPlan",
    "classify_llm_error",
    "parse_json_response",
]
