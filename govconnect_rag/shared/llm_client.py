"""
LLM Client Module
Shared LiteLLM wrapper for the small delegated calls of the retrieval core
(query expansion, RAG-intent micro classification).

Each call is a single attempt bounded by a timeout. Retrying and model
fallback belong to `ModelCallPlan` (llm_retry.py), so failures are raised as
classified `LLMAPIError`s rather than retried here.
"""

import asyncio
import json
import os
import time
from typing import Any

from litellm import acompletion

from govconnect_rag.domain.exceptions import LLMAPIError, LLMErrorKind
from govconnect_rag.monitoring.logger import ServiceLogger
from govconnect_rag.shared.constants import LLM_TIMEOUT_SECONDS
from govconnect_rag.shared.llm_retry import classify_llm_error

CREDENTIAL_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "OPENAI_API_KEY")


class LiteLLMTextGenerator:
    """
    Text generation gateway backed by litellm.acompletion.

    Usage:
        generator = LiteLLMTextGenerator(api_keys=["AIza..."])
        text = await generator.generate(prompt, model="gemini/gemini-2.0-flash-lite")
    """

    def __init__(
        self,
        api_keys: list[str] | None = None,
        timeout: float = LLM_TIMEOUT_SECONDS,
        logger: ServiceLogger | None = None,
    ):
        """
        Args:
            api_keys: Explicit keys (BYOK). When empty, provider env vars are used.
            timeout: Per-call timeout in seconds
            logger: Optional logger instance for tracking API calls
        """
        self.api_keys = [k for k in (api_keys or []) if k]
        self.timeout = timeout
        self.logger = logger or ServiceLogger("llm_client")

        self._total_calls = 0
        self._total_prompt_tokens = 0
        self._total_completion_tokens = 0
        self._total_errors = 0

    def has_credentials(self) -> bool:
        if self.api_keys:
            return True
        return any(os.environ.get(var) for var in CREDENTIAL_ENV_VARS)

    async def generate(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 150,
    ) -> str:
        """
        Generate a completion for a single user prompt.

        Args:
            prompt: Full prompt text
            model: litellm model name (e.g. "gemini/gemini-2.0-flash-lite")
            temperature: Sampling temperature
            max_tokens: Maximum tokens in the response

        Returns:
            Stripped response text

        Raises:
            LLMAPIError: classified failure (rate limit, invalid key, not found, transient)
        """
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if self.api_keys:
            kwargs["api_key"] = self.api_keys[0]

        self.logger.llm_request(model)
        start_time = time.time()

        try:
            response = await asyncio.wait_for(acompletion(**kwargs), timeout=self.timeout)
        except TimeoutError as e:
            self._total_errors += 1
            raise LLMAPIError(
                f"LLM call timed out after {self.timeout}s",
                model=model,
                error_code="timeout",
                kind=LLMErrorKind.TRANSIENT,
            ) from e
        except Exception as e:
            self._total_errors += 1
            raise LLMAPIError(str(e), model=model, kind=classify_llm_error(e)) from e

        if not response.choices:
            self._total_errors += 1
            raise LLMAPIError("LLM returned empty choices list", model=model)

        content = response.choices[0].message.content or ""
        latency_ms = (time.time() - start_time) * 1000
        self._total_calls += 1

        usage = getattr(response, "usage", None)
        if usage is not None:
            self._total_prompt_tokens += getattr(usage, "prompt_tokens", 0) or 0
            self._total_completion_tokens += getattr(usage, "completion_tokens", 0) or 0
            self.logger.llm_response(
                model,
                completion_tokens=getattr(usage, "completion_tokens", None),
                latency_ms=latency_ms,
            )
        else:
            self.logger.llm_response(model, latency_ms=latency_ms)

        return content.strip()

    def get_statistics(self) -> dict[str, Any]:
        """
        Returns:
            total_calls, total_prompt_tokens, total_completion_tokens, total_errors
        """
        return {
            "total_calls": self._total_calls,
            "total_prompt_tokens": self._total_prompt_tokens,
            "total_completion_tokens": self._total_completion_tokens,
            "total_errors": self._total_errors,
        }

    def reset_statistics(self) -> None:
        self._total_calls = 0
        self._total_prompt_tokens = 0
        self._total_completion_tokens = 0
        self._total_errors = 0


def parse_json_response(text: str, model: str | None = None) -> dict[str, Any]:
    """Strip ```json fences and parse; raises LLMAPIError on malformed payloads."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    cleaned = cleaned.strip()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise LLMAPIError(f"LLM response was not valid JSON: {e}", model=model) from e

    if not isinstance(data, dict):
        raise LLMAPIError("LLM JSON response is not an object", model=model)
    return data
