"""
Local Hybrid Search
===================
HybridSearchGateway built from an embedding gateway, a vector store and a
keyword store. Vector and keyword searches run concurrently and are fused
with weighted Reciprocal Rank Fusion:

    rrf      = w_v / (k + vector_rank) + w_k / (k + keyword_rank)
    combined = min(1, score * (1 + rrf * 10))

A candidate missing from one list gets rank max(len(vector), len(keyword)) + 1
in that list.

Benefits over pure vector search:
- exact matches of acronyms and codes (SKD, SKTM, NIK)
- names of people and places the embedding model blurs together
"""

import asyncio
import logging
from collections.abc import Sequence

from govconnect_rag.domain.entities.retrieval import (
    MatchType,
    RankedCandidate,
    RetrievalOptions,
    SearchCandidate,
)
from govconnect_rag.domain.exceptions import RetrievalError
from govconnect_rag.domain.interfaces.gateways import (
    EmbeddingGateway,
    KeywordSearchGateway,
    VectorStoreGateway,
)
from govconnect_rag.monitoring.logger import preview_query
from govconnect_rag.shared.constants import (
    EMBEDDING_DIMENSIONS,
    EMBEDDING_TASK_TYPE_QUERY,
    HYBRID_KEYWORD_WEIGHT,
    HYBRID_RRF_SCALE,
    HYBRID_VECTOR_WEIGHT,
    MIN_EFFECTIVE_SCORE,
    RRF_K,
    VECTOR_FETCH_MULTIPLIER,
    VECTOR_PRETHRESHOLD_FACTOR,
)

logger = logging.getLogger(__name__)


def reciprocal_rank_fusion(
    vector_results: Sequence[SearchCandidate],
    keyword_results: Sequence[SearchCandidate],
    vector_weight: float = HYBRID_VECTOR_WEIGHT,
    keyword_weight: float = HYBRID_KEYWORD_WEIGHT,
    k: int = RRF_K,
    rrf_scale: float = HYBRID_RRF_SCALE,
) -> list[RankedCandidate]:
    """
    Fuse a vector ranking and a keyword ranking.

    A candidate found by both lists keeps the vector copy (its score is the
    semantic similarity).

    Returns:
        Fused candidates sorted by combined score, descending
    """
    vector_ranks = {c.id: rank for rank, c in enumerate(vector_results, start=1)}
    keyword_ranks = {c.id: rank for rank, c in enumerate(keyword_results, start=1)}

    merged: dict[str, SearchCandidate] = {}
    for candidate in list(vector_results) + list(keyword_results):
        merged.setdefault(candidate.id, candidate)

    missing_rank = max(len(vector_results), len(keyword_results)) + 1

    fused: list[RankedCandidate] = []
    for candidate_id, candidate in merged.items():
        vector_rank = vector_ranks.get(candidate_id)
        keyword_rank = keyword_ranks.get(candidate_id)

        rrf = vector_weight / (k + (vector_rank or missing_rank)) + keyword_weight / (
            k + (keyword_rank or missing_rank)
        )

        if vector_rank and keyword_rank:
            match_type = MatchType.BOTH
        elif vector_rank:
            match_type = MatchType.VECTOR
        else:
            match_type = MatchType.KEYWORD

        fused.append(
            RankedCandidate.from_candidate(
                candidate,
                score=min(1.0, candidate.score * (1 + rrf * rrf_scale)),
                vector_rank=vector_rank,
                keyword_rank=keyword_rank,
                rrf_score=rrf,
                match_type=match_type,
            )
        )

    fused.sort(key=lambda c: c.score, reverse=True)
    return fused


class LocalHybridSearch:
    """
    Vector + keyword search fused in-process.

    Usage:
        search = LocalHybridSearch(embeddings, vector_store, keyword_store)
        results = await search.hybrid_search("syarat SKTM", RetrievalOptions(top_k=5))
    """

    def __init__(
        self,
        embedding_gateway: EmbeddingGateway,
        vector_store: VectorStoreGateway,
        keyword_store: KeywordSearchGateway | None = None,
        vector_weight: float = HYBRID_VECTOR_WEIGHT,
        keyword_weight: float = HYBRID_KEYWORD_WEIGHT,
        k: int = RRF_K,
    ):
        """
        Args:
            embedding_gateway: Query embedder
            vector_store: Nearest-neighbour search
            keyword_store: Full-text search (None = vector-only fusion)
            vector_weight: RRF weight of the vector ranking
            keyword_weight: RRF weight of the keyword ranking
            k: RRF damping constant
        """
        self.embedding_gateway = embedding_gateway
        self.vector_store = vector_store
        self.keyword_store = keyword_store
        self.vector_weight = vector_weight
        self.keyword_weight = keyword_weight
        self.k = k

    async def hybrid_search(self, query: str, options: RetrievalOptions) -> list[SearchCandidate]:
        """
        Returns:
            Fused candidates with score >= options.min_score, at most options.top_k

        Raises:
            RetrievalError: embedding or vector search failed
        """
        options = options.with_defaults()
        try:
            vector = await self.embedding_gateway.generate_embedding(
                query,
                task_type=EMBEDDING_TASK_TYPE_QUERY,
                output_dimensionality=EMBEDDING_DIMENSIONS,
                use_cache=True,
            )
        except Exception as e:
            raise RetrievalError(f"Query embedding failed: {e}", stage="embedding", cause=e) from e

        fetch_k = options.top_k * VECTOR_FETCH_MULTIPLIER
        vector_min_score = max(options.min_score * VECTOR_PRETHRESHOLD_FACTOR, MIN_EFFECTIVE_SCORE)

        vector_results, keyword_results = await asyncio.gather(
            self.vector_store.search_vectors(
                vector,
                top_k=fetch_k,
                min_score=vector_min_score,
                categories=options.categories,
                source_types=options.source_types,
                village_id=options.village_id,
            ),
            self._search_keywords(query, options, fetch_k),
            return_exceptions=True,
        )

        if isinstance(vector_results, Exception):
            raise RetrievalError(
                f"Vector search failed: {vector_results}",
                stage="vector_search",
                cause=vector_results,
            ) from vector_results
        if isinstance(vector_results, BaseException):
            raise vector_results
        if isinstance(keyword_results, Exception):
            logger.warning(f"Keyword search failed, continuing vector-only: {keyword_results}")
            keyword_results = []

        fused = reciprocal_rank_fusion(
            vector_results,
            keyword_results,
            vector_weight=self.vector_weight,
            keyword_weight=self.keyword_weight,
            k=self.k,
        )
        filtered = [c for c in fused if c.score >= options.min_score][: options.top_k]

        logger.info(
            f"Hybrid search: {preview_query(query)} vector={len(vector_results)} "
            f"keyword={len(keyword_results)} fused={len(fused)} final={len(filtered)}"
        )
        return filtered

    async def _search_keywords(
        self, query: str, options: RetrievalOptions, top_k: int
    ) -> list[SearchCandidate]:
        if self.keyword_store is None:
            return []
        return await self.keyword_store.search_keywords(
            query,
            top_k=top_k,
            categories=options.categories,
            source_types=options.source_types,
            village_id=options.village_id,
        )
