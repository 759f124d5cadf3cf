"""
Hybrid Retriever
================
Fetches candidates for an (expanded) query through one of two paths:

1. Hybrid path  - HybridSearchGateway returns pre-fused, pre-filtered results
2. Vector path  - embed → search_vectors(2 × top_k, 0.8 × bar) → RRF rerank
                  with the original query → filter by the bar

The bar is the caller's min_score, relaxed by optional_intent_factor (10% by
default) for "optional" intent and never below MIN_EFFECTIVE_SCORE.

Any gateway failure is fatal for the stage and surfaces as RetrievalError.
"""

import logging
from dataclasses import replace

from govconnect_rag.domain.entities.retrieval import (
    QueryIntent,
    RankedCandidate,
    RetrievalOptions,
)
from govconnect_rag.domain.exceptions import RetrievalError
from govconnect_rag.domain.interfaces.gateways import (
    EmbeddingGateway,
    HybridSearchGateway,
    VectorStoreGateway,
)
from govconnect_rag.monitoring.logger import preview_query
from govconnect_rag.shared.constants import (
    EMBEDDING_DIMENSIONS,
    EMBEDDING_TASK_TYPE_QUERY,
    MIN_EFFECTIVE_SCORE,
    OPTIONAL_INTENT_SCORE_FACTOR,
    VECTOR_FETCH_MULTIPLIER,
    VECTOR_PRETHRESHOLD_FACTOR,
)

from .reranker import RRFReranker

logger = logging.getLogger(__name__)


class HybridRetriever:
    """
    Usage:
        retriever = HybridRetriever(embeddings, vector_store, hybrid_search=LocalHybridSearch(...))
        ranked = await retriever.retrieve(expanded, options, QueryIntent.REQUIRED, original_query=query)
    """

    def __init__(
        self,
        embedding_gateway: EmbeddingGateway,
        vector_store: VectorStoreGateway,
        hybrid_search: HybridSearchGateway | None = None,
        reranker: RRFReranker | None = None,
        min_effective_score: float = MIN_EFFECTIVE_SCORE,
        optional_intent_factor: float = OPTIONAL_INTENT_SCORE_FACTOR,
    ):
        """
        Args:
            embedding_gateway: Query embedder (vector path)
            vector_store: Nearest-neighbour search (vector path)
            hybrid_search: Pre-fused search; None forces the vector path
            reranker: RRF reranker for the vector path
            min_effective_score: Floor of the adjusted threshold
            optional_intent_factor: Bar multiplier for non-required intents
        """
        self.embedding_gateway = embedding_gateway
        self.vector_store = vector_store
        self.hybrid_search = hybrid_search
        self.reranker = reranker or RRFReranker()
        self.min_effective_score = min_effective_score
        self.optional_intent_factor = optional_intent_factor

    def adjusted_min_score(self, min_score: float, intent: QueryIntent) -> float:
        if intent == QueryIntent.REQUIRED:
            bar = min_score
        else:
            bar = min_score * self.optional_intent_factor
        return max(bar, self.min_effective_score)

    async def retrieve(
        self,
        query: str,
        options: RetrievalOptions,
        intent: QueryIntent,
        original_query: str | None = None,
    ) -> list[RankedCandidate]:
        """
        Args:
            query: Search query (possibly expanded)
            options: Retrieval options
            intent: Classified intent (REQUIRED keeps the full bar)
            original_query: Unexpanded query, used for lexical re-ranking

        Returns:
            Candidates with score >= adjusted bar, best first, at most top_k

        Raises:
            RetrievalError: embedding, vector or hybrid search failed
        """
        options = options.with_defaults()
        min_score = self.adjusted_min_score(options.min_score, intent)

        if options.use_hybrid_search and self.hybrid_search is not None:
            return await self._hybrid(query, replace(options, min_score=min_score))
        return await self._vector(query, original_query or query, options, min_score)

    async def _hybrid(self, query: str, options: RetrievalOptions) -> list[RankedCandidate]:
        try:
            results = await self.hybrid_search.hybrid_search(query, options)
        except RetrievalError:
            raise
        except Exception as e:
            raise RetrievalError(f"Hybrid search failed: {e}", stage="hybrid_search", cause=e) from e

        ranked = [
            c if isinstance(c, RankedCandidate) else RankedCandidate.from_candidate(c)
            for c in results
        ]
        ranked.sort(key=lambda c: c.score, reverse=True)
        logger.debug(f"Hybrid search returned {len(ranked)} candidates for {preview_query(query)}")
        return ranked[: options.top_k]

    async def _vector(
        self, query: str, rerank_query: str, options: RetrievalOptions, min_score: float
    ) -> list[RankedCandidate]:
        try:
            vector = await self.embedding_gateway.generate_embedding(
                query,
                task_type=EMBEDDING_TASK_TYPE_QUERY,
                output_dimensionality=EMBEDDING_DIMENSIONS,
                use_cache=True,
            )
        except Exception as e:
            raise RetrievalError(f"Query embedding failed: {e}", stage="embedding", cause=e) from e

        try:
            results = await self.vector_store.search_vectors(
                vector,
                top_k=options.top_k * VECTOR_FETCH_MULTIPLIER,
                min_score=min_score * VECTOR_PRETHRESHOLD_FACTOR,
                categories=options.categories,
                source_types=options.source_types,
                village_id=options.village_id,
            )
        except Exception as e:
            raise RetrievalError(f"Vector search failed: {e}", stage="vector_search", cause=e) from e

        if not results:
            logger.info(f"No vector results for {preview_query(query)}")
            return []

        reranked = self.reranker.rerank(results, rerank_query, options.top_k)
        return [c for c in reranked if c.score >= min_score]
