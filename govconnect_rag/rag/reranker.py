"""
RRF Reranker
============
Re-ranks vector search results with Reciprocal Rank Fusion of two rankings:

1. Vector rank  - input order (candidates arrive sorted by vector similarity)
2. Keyword rank - order by lexical keyword score (similarity.keyword_score)

    rrf   = w_v / (k + vector_rank) + w_k / (k + keyword_rank)
    final = min(1.0, score * (1 + rrf * boost) + source_boost)

The fused score stays anchored to the vector similarity, so a final score
keeps its "semantic similarity" meaning and is never below the input score.
"""

import logging
from collections.abc import Sequence

from govconnect_rag.domain.entities.retrieval import RankedCandidate, SearchCandidate, SourceType
from govconnect_rag.shared.constants import (
    KNOWLEDGE_SOURCE_BOOST,
    RRF_BOOST_FACTOR,
    RRF_K,
    RRF_KEYWORD_WEIGHT,
    RRF_VECTOR_WEIGHT,
)

from .similarity import keyword_score

logger = logging.getLogger(__name__)


class RRFReranker:
    """
    Reciprocal Rank Fusion reranker.

    Usage:
        reranker = RRFReranker()
        ranked = reranker.rerank(candidates, "jam buka kelurahan", top_k=8)
    """

    def __init__(
        self,
        k: int = RRF_K,
        vector_weight: float = RRF_VECTOR_WEIGHT,
        keyword_weight: float = RRF_KEYWORD_WEIGHT,
        boost_factor: float = RRF_BOOST_FACTOR,
        knowledge_boost: float = KNOWLEDGE_SOURCE_BOOST,
    ):
        """
        Args:
            k: RRF damping constant
            vector_weight: Weight of the vector ranking
            keyword_weight: Weight of the keyword ranking
            boost_factor: Scale of the RRF boost applied to the vector score
            knowledge_boost: Flat bonus for curated knowledge entries
        """
        self.k = k
        self.vector_weight = vector_weight
        self.keyword_weight = keyword_weight
        self.boost_factor = boost_factor
        self.knowledge_boost = knowledge_boost

    def rerank(
        self, candidates: Sequence[SearchCandidate], query: str, top_k: int
    ) -> list[RankedCandidate]:
        """
        Args:
            candidates: Vector search results, sorted by similarity descending
            query: Query used for keyword scoring
            top_k: Number of results to return

        Returns:
            Candidates with fused scores, sorted descending, truncated to top_k
        """
        if not candidates:
            return []

        keyword_scores = [keyword_score(c.content, query) for c in candidates]

        # sorted() is stable: ties keep their vector order
        by_keyword = sorted(range(len(candidates)), key=lambda i: -keyword_scores[i])
        keyword_ranks = {idx: rank for rank, idx in enumerate(by_keyword, start=1)}

        ranked: list[RankedCandidate] = []
        for idx, candidate in enumerate(candidates):
            vector_rank = idx + 1
            keyword_rank = keyword_ranks[idx]

            rrf = self.vector_weight / (self.k + vector_rank) + self.keyword_weight / (
                self.k + keyword_rank
            )
            source_boost = (
                self.knowledge_boost if candidate.source_type == SourceType.KNOWLEDGE else 0.0
            )
            final_score = min(1.0, candidate.score * (1 + rrf * self.boost_factor) + source_boost)

            ranked.append(
                RankedCandidate.from_candidate(
                    candidate,
                    score=final_score,
                    vector_rank=vector_rank,
                    keyword_rank=keyword_rank,
                    rrf_score=rrf,
                )
            )

        ranked.sort(key=lambda c: c.score, reverse=True)
        logger.debug(
            f"Reranked {len(candidates)} candidates, top={ranked[0].score:.4f}, returning {top_k}"
        )
        return ranked[:top_k]
