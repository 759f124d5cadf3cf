"""
Gateway Protocols
=================
Abstract interfaces for every external collaborator of the retrieval core.

Implementations:
- EmbeddingGateway       → LiteLLMEmbeddingGateway (govconnect_rag/rag/embedding_gateway.py)
- HybridSearchGateway    → LocalHybridSearch (govconnect_rag/rag/hybrid_search.py)
- TextGenerationGateway  → LiteLLMTextGenerator (govconnect_rag/shared/llm_client.py)
- IntentClassifierGateway → LLMIntentClassifier (govconnect_rag/rag/intent_classifier.py)
- VectorStoreGateway / KeywordSearchGateway → provided by the hosting service
  (pgvector / Postgres full-text in production)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from govconnect_rag.domain.entities.retrieval import (
        RAGIntentDecision,
        RetrievalOptions,
        SearchCandidate,
    )


@runtime_checkable
class EmbeddingGateway(Protocol):
    """Turns text into a dense vector."""

    async def generate_embedding(
        self,
        text: str,
        *,
        task_type: str = "RETRIEVAL_QUERY",
        output_dimensionality: int = 768,
        use_cache: bool = True,
    ) -> list[float]:
        """
        Args:
            text: Text to embed
            task_type: Provider task hint (RETRIEVAL_QUERY for user questions)
            output_dimensionality: Vector size
            use_cache: Whether a cached vector may be returned

        Returns:
            Embedding vector
        """
        ...


@runtime_checkable
class VectorStoreGateway(Protocol):
    """Nearest-neighbour search over knowledge entries and document chunks."""

    async def search_vectors(
        self,
        vector: list[float],
        *,
        top_k: int,
        min_score: float,
        categories: list[str] | None = None,
        source_types: tuple[str, ...] | None = None,
        village_id: str | None = None,
    ) -> list[SearchCandidate]:
        """
        Returns:
            Candidates sorted by vector similarity, descending
        """
        ...

    async def record_batch_retrievals(self, ids: list[str]) -> None:
        """Analytics hook: bump retrieval counters of knowledge entries."""
        ...


@runtime_checkable
class KeywordSearchGateway(Protocol):
    """Full-text search (Postgres ts_vector / ILIKE in production)."""

    async def search_keywords(
        self,
        query: str,
        *,
        top_k: int,
        categories: list[str] | None = None,
        source_types: tuple[str, ...] | None = None,
        village_id: str | None = None,
    ) -> list[SearchCandidate]:
        """
        Returns:
            Candidates sorted by keyword relevance, descending, scores normalized to 0~1
        """
        ...


@runtime_checkable
class HybridSearchGateway(Protocol):
    """Pre-fused vector + keyword search."""

    async def hybrid_search(self, query: str, options: RetrievalOptions) -> list[SearchCandidate]:
        """
        Returns:
            Merged candidates, already filtered by options.min_score and truncated to options.top_k
        """
        ...


@runtime_checkable
class IntentClassifierGateway(Protocol):
    """Delegated micro-classification: does this message need the knowledge base?"""

    async def classify_rag_intent(
        self, query: str, context: dict[str, Any] | None = None
    ) -> RAGIntentDecision | None:
        ...


@runtime_checkable
class TextGenerationGateway(Protocol):
    """Single-prompt text generation used for query expansion."""

    def has_credentials(self) -> bool:
        """True when at least one API key is configured."""
        ...

    async def generate(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 150,
    ) -> str:
        """
        Raises:
            LLMAPIError: classified provider failure
        """
        ...
