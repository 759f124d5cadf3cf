"""
LiteLLM Embedding Gateway
Query embeddings through litellm.aembedding, fronted by an embedding cache.
"""

import asyncio
import logging
from typing import Any

from litellm import aembedding

from govconnect_rag.domain.exceptions import LLMAPIError
from govconnect_rag.shared.constants import (
    EMBEDDING_DIMENSIONS,
    EMBEDDING_TASK_TYPE_QUERY,
    LLM_TIMEOUT_SECONDS,
)
from govconnect_rag.shared.llm_retry import classify_llm_error

from .embedding_cache import EmbeddingCacheProtocol, InMemoryEmbeddingCache, embedding_cache_key

logger = logging.getLogger(__name__)


class LiteLLMEmbeddingGateway:
    """
    EmbeddingGateway implementation.

    Usage:
        gateway = LiteLLMEmbeddingGateway(model="gemini/text-embedding-004")
        vector = await gateway.generate_embedding("jam buka kantor kelurahan")
    """

    def __init__(
        self,
        model: str = "gemini/text-embedding-004",
        api_key: str | None = None,
        cache: EmbeddingCacheProtocol | None = None,
        timeout: float = LLM_TIMEOUT_SECONDS,
    ):
        self.model = model
        self.api_key = api_key
        self.cache = cache if cache is not None else InMemoryEmbeddingCache()
        self.timeout = timeout

    async def generate_embedding(
        self,
        text: str,
        *,
        task_type: str = EMBEDDING_TASK_TYPE_QUERY,
        output_dimensionality: int = EMBEDDING_DIMENSIONS,
        use_cache: bool = True,
    ) -> list[float]:
        """
        Raises:
            LLMAPIError: provider failure or empty response
        """
        key = embedding_cache_key(text, self.model, task_type, output_dimensionality)
        if use_cache:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached

        kwargs: dict[str, Any] = {
            "model": self.model,
            "input": [text],
            "dimensions": output_dimensionality,
        }
        if self.model.startswith(("gemini/", "vertex_ai/")):
            kwargs["task_type"] = task_type
        if self.api_key:
            kwargs["api_key"] = self.api_key

        try:
            response = await asyncio.wait_for(aembedding(**kwargs), timeout=self.timeout)
        except Exception as e:
            raise LLMAPIError(
                f"Embedding request failed: {e}", model=self.model, kind=classify_llm_error(e)
            ) from e

        if not response.data:
            raise LLMAPIError("Embedding response contained no vectors", model=self.model)

        item = response.data[0]
        vector = item["embedding"] if isinstance(item, dict) else item.embedding
        vector = [float(v) for v in vector]

        if use_cache:
            await self.cache.put(key, vector)
        logger.debug(f"Embedded query ({len(vector)} dims, model={self.model})")
        return vector

    async def close(self) -> None:
        await self.cache.close()
