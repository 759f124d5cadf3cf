"""Tests for the LiteLLM embedding gateway."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from govconnect_rag.domain.exceptions import LLMAPIError, LLMErrorKind
from govconnect_rag.domain.interfaces.gateways import EmbeddingGateway
from govconnect_rag.rag.embedding_gateway import LiteLLMEmbeddingGateway


def _response(vector):
    mock = MagicMock()
    mock.data = [{"embedding": vector}]
    return mock


class TestLiteLLMEmbeddingGateway:
    def test_protocol_compliance(self):
        assert isinstance(LiteLLMEmbeddingGateway(), EmbeddingGateway)

    @pytest.mark.asyncio
    @patch("govconnect_rag.rag.embedding_gateway.aembedding", new_callable=AsyncMock)
    async def test_embeds_and_caches(self, mock_aembedding):
        mock_aembedding.return_value = _response([0.1, 0.2, 0.3])
        gateway = LiteLLMEmbeddingGateway(model="gemini/text-embedding-004", api_key="AIza-test")

        first = await gateway.generate_embedding("jam buka kantor")
        second = await gateway.generate_embedding("Jam buka  kantor")

        assert first == second == [0.1, 0.2, 0.3]
        mock_aembedding.assert_awaited_once()
        kwargs = mock_aembedding.call_args.kwargs
        assert kwargs["input"] == ["jam buka kantor"]
        assert kwargs["dimensions"] == 768
        assert kwargs["task_type"] == "RETRIEVAL_QUERY"
        assert kwargs["api_key"] == "AIza-test"

    @pytest.mark.asyncio
    @patch("govconnect_rag.rag.embedding_gateway.aembedding", new_callable=AsyncMock)
    async def test_task_type_only_for_gemini(self, mock_aembedding):
        mock_aembedding.return_value = _response([0.5])
        gateway = LiteLLMEmbeddingGateway(model="text-embedding-3-small")

        await gateway.generate_embedding("jam buka kantor")

        assert "task_type" not in mock_aembedding.call_args.kwargs

    @pytest.mark.asyncio
    @patch("govconnect_rag.rag.embedding_gateway.aembedding", new_callable=AsyncMock)
    async def test_bypass_cache(self, mock_aembedding):
        mock_aembedding.return_value = _response([0.5])
        gateway = LiteLLMEmbeddingGateway()

        await gateway.generate_embedding("jam buka", use_cache=False)
        await gateway.generate_embedding("jam buka", use_cache=False)

        assert mock_aembedding.await_count == 2

    @pytest.mark.asyncio
    @patch("govconnect_rag.rag.embedding_gateway.aembedding", new_callable=AsyncMock)
    async def test_failure_is_classified(self, mock_aembedding):
        mock_aembedding.side_effect = Exception("429 RESOURCE_EXHAUSTED")

        with pytest.raises(LLMAPIError) as exc_info:
            await LiteLLMEmbeddingGateway().generate_embedding("jam buka")
        assert exc_info.value.kind == LLMErrorKind.RATE_LIMITED

    @pytest.mark.asyncio
    @patch("govconnect_rag.rag.embedding_gateway.aembedding", new_callable=AsyncMock)
    async def test_empty_response(self, mock_aembedding):
        mock_aembedding.return_value = MagicMock(data=[])

        with pytest.raises(LLMAPIError):
            await LiteLLMEmbeddingGateway().generate_embedding("jam buka")
