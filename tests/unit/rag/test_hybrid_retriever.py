"""Tests for HybridRetriever path selection and thresholds."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from govconnect_rag.domain.entities.retrieval import QueryIntent, RankedCandidate, RetrievalOptions
from govconnect_rag.domain.exceptions import RetrievalError
from govconnect_rag.rag.hybrid_retriever import HybridRetriever


@pytest.fixture
def hybrid_search():
    mock = MagicMock()
    mock.hybrid_search = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def retriever(embedding_gateway, vector_store, hybrid_search):
    return HybridRetriever(embedding_gateway, vector_store, hybrid_search=hybrid_search)


class TestAdjustedMinScore:
    @pytest.mark.parametrize(
        "min_score,intent,expected",
        [
            (0.65, QueryIntent.REQUIRED, 0.65),
            (0.65, QueryIntent.OPTIONAL, 0.585),
            (0.40, QueryIntent.OPTIONAL, 0.45),
            (0.30, QueryIntent.REQUIRED, 0.45),
        ],
    )
    def test_bar(self, retriever, min_score, intent, expected):
        assert retriever.adjusted_min_score(min_score, intent) == pytest.approx(expected)

    def test_custom_optional_factor(self, embedding_gateway, vector_store):
        retriever = HybridRetriever(embedding_gateway, vector_store, optional_intent_factor=1.0)
        assert retriever.adjusted_min_score(0.65, QueryIntent.OPTIONAL) == pytest.approx(0.65)


class TestHybridPath:
    @pytest.mark.asyncio
    async def test_passes_adjusted_options(self, retriever, hybrid_search, make_candidate):
        hybrid_search.hybrid_search.return_value = [
            make_candidate(id="b", score=0.7),
            make_candidate(id="a", score=0.9),
        ]
        options = RetrievalOptions(top_k=5, min_score=0.65)

        results = await retriever.retrieve("jam buka kantor", options, QueryIntent.OPTIONAL)

        assert [c.id for c in results] == ["a", "b"]
        assert all(isinstance(c, RankedCandidate) for c in results)
        passed = hybrid_search.hybrid_search.call_args.args[1]
        assert passed.min_score == pytest.approx(0.585)
        assert options.min_score == 0.65

    @pytest.mark.asyncio
    async def test_truncates_to_top_k(self, retriever, hybrid_search, make_candidate):
        hybrid_search.hybrid_search.return_value = [
            make_candidate(id=str(i), score=0.9) for i in range(5)
        ]
        results = await retriever.retrieve(
            "jam buka kantor", RetrievalOptions(top_k=2), QueryIntent.REQUIRED
        )
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_failure_wrapped(self, retriever, hybrid_search):
        hybrid_search.hybrid_search.side_effect = RuntimeError("db down")

        with pytest.raises(RetrievalError) as exc_info:
            await retriever.retrieve("jam buka kantor", RetrievalOptions(), QueryIntent.REQUIRED)
        assert exc_info.value.stage == "hybrid_search"

    @pytest.mark.asyncio
    async def test_retrieval_error_passes_through(self, retriever, hybrid_search):
        hybrid_search.hybrid_search.side_effect = RetrievalError("embed", stage="embedding")

        with pytest.raises(RetrievalError) as exc_info:
            await retriever.retrieve("jam buka kantor", RetrievalOptions(), QueryIntent.REQUIRED)
        assert exc_info.value.stage == "embedding"


class TestVectorPath:
    @pytest.mark.asyncio
    async def test_used_when_hybrid_disabled(
        self, retriever, hybrid_search, vector_store, make_candidate
    ):
        vector_store.search_vectors.return_value = [
            make_candidate(id="a", score=0.91, content="Jam buka kelurahan 08.00-16.00"),
            make_candidate(id="b", score=0.60, content="Syarat KTP elektronik"),
            make_candidate(id="c", score=0.50, content="Posyandu hari Rabu"),
        ]
        options = RetrievalOptions(top_k=5, min_score=0.6, use_hybrid_search=False)

        results = await retriever.retrieve(
            "jam buka kelurahan waktu operasional", options, QueryIntent.REQUIRED,
            original_query="jam buka kelurahan",
        )

        hybrid_search.hybrid_search.assert_not_awaited()
        _, kwargs = vector_store.search_vectors.call_args
        assert kwargs["top_k"] == 10
        assert kwargs["min_score"] == pytest.approx(0.48)
        assert [c.id for c in results] == ["a", "b"]
        assert all(c.score >= 0.6 for c in results)
        assert results[0].keyword_rank == 1

    @pytest.mark.asyncio
    async def test_used_without_hybrid_gateway(self, embedding_gateway, vector_store):
        retriever = HybridRetriever(embedding_gateway, vector_store)
        assert await retriever.retrieve("jam buka", RetrievalOptions(), QueryIntent.REQUIRED) == []
        vector_store.search_vectors.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_embedding_failure(self, embedding_gateway, vector_store):
        embedding_gateway.generate_embedding.side_effect = RuntimeError("quota")
        retriever = HybridRetriever(embedding_gateway, vector_store)

        with pytest.raises(RetrievalError) as exc_info:
            await retriever.retrieve("jam buka", RetrievalOptions(), QueryIntent.REQUIRED)
        assert exc_info.value.stage == "embedding"

    @pytest.mark.asyncio
    async def test_vector_failure(self, embedding_gateway, vector_store):
        vector_store.search_vectors.side_effect = RuntimeError("pgvector down")
        retriever = HybridRetriever(embedding_gateway, vector_store)

        with pytest.raises(RetrievalError) as exc_info:
            await retriever.retrieve("jam buka", RetrievalOptions(), QueryIntent.REQUIRED)
        assert exc_info.value.stage == "vector_search"
