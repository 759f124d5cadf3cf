"""
LLM Model Call Plan
===================
Retry logic shared by every delegated LLM call, written as a small state
machine over (model, attempt).

Transitions on failure:
    rate_limited → next_model   (model at capacity, retrying is useless)
    invalid_key  → next_model
    not_found    → next_model
    transient    → retry_same   (until MAX_RETRIES_PER_MODEL)

A result rejected by the caller's `accept` predicate counts as a transient
failure. When every model is exhausted the plan returns None; the caller
decides what the fallback is.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

import litellm

from govconnect_rag.domain.exceptions import LLMAPIError, LLMErrorKind
from govconnect_rag.shared.constants import MAX_RETRIES_PER_MODEL

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CallAction(str, Enum):
    """Next step of the call plan after a failed attempt"""

    RETRY_SAME = "retry_same"
    NEXT_MODEL = "next_model"


TRANSITIONS: dict[LLMErrorKind, CallAction] = {
    LLMErrorKind.RATE_LIMITED: CallAction.NEXT_MODEL,
    LLMErrorKind.INVALID_KEY: CallAction.NEXT_MODEL,
    LLMErrorKind.NOT_FOUND: CallAction.NEXT_MODEL,
    LLMErrorKind.TRANSIENT: CallAction.RETRY_SAME,
}

_RATE_LIMIT_MARKERS = ("429", "rate limit", "rate_limit", "resource_exhausted", "quota")
_INVALID_KEY_MARKERS = ("api_key_invalid", "401", "invalid api key", "permission denied")
_NOT_FOUND_MARKERS = ("404", "not found")


def classify_llm_error(error: BaseException) -> LLMErrorKind:
    """
    Map a provider exception to an LLMErrorKind.

    litellm exception types are checked first; plain exceptions from other
    gateways fall back to message markers (429, API_KEY_INVALID, 404, ...).
    """
    if isinstance(error, LLMAPIError):
        return error.kind
    if isinstance(error, litellm.RateLimitError):
        return LLMErrorKind.RATE_LIMITED
    if isinstance(error, litellm.AuthenticationError):
        return LLMErrorKind.INVALID_KEY
    if isinstance(error, litellm.NotFoundError):
        return LLMErrorKind.NOT_FOUND

    message = str(error).lower()
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return LLMErrorKind.RATE_LIMITED
    if any(marker in message for marker in _INVALID_KEY_MARKERS):
        return LLMErrorKind.INVALID_KEY
    if any(marker in message for marker in _NOT_FOUND_MARKERS):
        return LLMErrorKind.NOT_FOUND
    return LLMErrorKind.TRANSIENT


@dataclass
class CallAttempt:
    """One row of the call log"""

    model: str
    attempt: int  # 1-indexed within the model
    error_kind: LLMErrorKind | None = None
    accepted: bool = False


@dataclass
class CallPlanOutcome(Generic[T]):
    """Result of running a call plan"""

    value: T | None
    model: str | None
    attempts: list[CallAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.value is not None


class ModelCallPlan:
    """
    Prioritized model list × per-model retry budget.

    Usage:
        plan = ModelCallPlan(["gemini/gemini-2.0-flash-lite", "gemini/gemini-2.5-flash-lite"])
        outcome = await plan.run(
            lambda model: generator.generate(prompt, model=model),
            accept=lambda text: len(text) > len(query),
        )
        expanded = outcome.value or query
    """

    def __init__(
        self,
        models: Sequence[str],
        max_retries_per_model: int = MAX_RETRIES_PER_MODEL,
        retry_delay: float = 0.0,
    ):
        """
        Args:
            models: Models in priority order (cheapest/fastest first)
            max_retries_per_model: Attempts per model before moving on
            retry_delay: Base delay between retries of the same model (exponential)
        """
        if max_retries_per_model < 1:
            raise ValueError("max_retries_per_model must be >= 1")
        self.models = [m for m in models if m]
        self.max_retries_per_model = max_retries_per_model
        self.retry_delay = retry_delay

    @staticmethod
    def next_action(kind: LLMErrorKind) -> CallAction:
        return TRANSITIONS[kind]

    async def run(
        self,
        call: Callable[[str], Awaitable[T]],
        accept: Callable[[T], bool] | None = None,
        label: str = "llm_call",
    ) -> CallPlanOutcome[T]:
        """
        Walk the plan until one attempt produces an accepted value.

        Args:
            call: Coroutine factory taking the model name
            accept: Predicate on the raw value; rejected values retry the same model
            label: Name used in log lines

        Returns:
            CallPlanOutcome (value=None when every model was exhausted)
        """
        attempts: list[CallAttempt] = []

        for model in self.models:
            for attempt in range(1, self.max_retries_per_model + 1):
                record = CallAttempt(model=model, attempt=attempt)
                attempts.append(record)
                try:
                    value = await call(model)
                except Exception as e:
                    kind = classify_llm_error(e)
                    record.error_kind = kind
                    action = self.next_action(kind)
                    logger.warning(
                        f"{label} failed (model={model}, attempt {attempt}/"
                        f"{self.max_retries_per_model}, kind={kind.value}): {e}"
                    )
                    if action == CallAction.NEXT_MODEL:
                        break
                    await self._backoff(attempt)
                    continue

                if accept is None or accept(value):
                    record.accepted = True
                    return CallPlanOutcome(value=value, model=model, attempts=attempts)

                logger.debug(f"{label} result rejected (model={model}, attempt {attempt})")

        logger.warning(f"{label}: all {len(self.models)} models exhausted")
        return CallPlanOutcome(value=None, model=None, attempts=attempts)

    async def _backoff(self, attempt: int) -> None:
        if self.retry_delay > 0 and attempt < self.max_retries_per_model:
            await asyncio.sleep(self.retry_delay * 2 ** (attempt - 1))
