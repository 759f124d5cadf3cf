"""Tests for embedding cache backends."""

import pytest

from govconnect_rag.rag.embedding_cache import (
    EmbeddingCacheProtocol,
    InMemoryEmbeddingCache,
    SQLiteEmbeddingCache,
    embedding_cache_key,
)


class TestEmbeddingCacheKey:
    def test_whitespace_and_case_insensitive(self):
        a = embedding_cache_key("Jam  Buka Kantor", "m", "RETRIEVAL_QUERY", 768)
        b = embedding_cache_key("jam buka kantor", "m", "RETRIEVAL_QUERY", 768)
        assert a == b

    def test_request_shape_is_part_of_key(self):
        base = embedding_cache_key("jam buka", "m", "RETRIEVAL_QUERY", 768)
        assert base != embedding_cache_key("jam buka", "m", "RETRIEVAL_QUERY", 256)
        assert base != embedding_cache_key("jam buka", "m2", "RETRIEVAL_QUERY", 768)
        assert base != embedding_cache_key("jam buka", "m", "RETRIEVAL_DOCUMENT", 768)


class TestInMemoryEmbeddingCache:
    @pytest.mark.asyncio
    async def test_put_get(self):
        cache = InMemoryEmbeddingCache(max_size=10)
        await cache.put("k", [0.1, 0.2])
        assert await cache.get("k") == [0.1, 0.2]
        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_fifo_eviction(self):
        cache = InMemoryEmbeddingCache(max_size=2)
        await cache.put("k1", [1.0])
        await cache.put("k2", [2.0])
        await cache.put("k3", [3.0])

        assert await cache.get("k1") is None
        assert await cache.get("k3") == [3.0]

    @pytest.mark.asyncio
    async def test_stats_and_close(self):
        cache = InMemoryEmbeddingCache()
        await cache.put("k", [1.0])
        await cache.get("k")
        await cache.get("x")

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5

        await cache.close()
        assert cache.get_stats()["size"] == 0

    def test_protocol_compliance(self):
        assert isinstance(InMemoryEmbeddingCache(), EmbeddingCacheProtocol)


class TestSQLiteEmbeddingCache:
    @pytest.mark.asyncio
    async def test_float32_roundtrip(self, tmp_path):
        cache = SQLiteEmbeddingCache(db_path=str(tmp_path / "emb.db"), max_size=100)
        embedding = [0.123456, -0.987654, 1.5, 0.0, -1.0]

        await cache.put("k", embedding)
        result = await cache.get("k")

        assert result == pytest.approx(embedding, abs=1e-6)
        assert await cache.get("missing") is None
        await cache.close()

    @pytest.mark.asyncio
    async def test_size_bounded(self, tmp_path):
        cache = SQLiteEmbeddingCache(db_path=str(tmp_path / "emb.db"), max_size=3)
        for i in range(4):
            await cache.put(f"k{i}", [float(i)])

        found = [await cache.get(f"k{i}") for i in range(4)]
        assert sum(1 for v in found if v is not None) == 3
        await cache.close()

    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        db_path = str(tmp_path / "nested" / "emb.db")
        cache = SQLiteEmbeddingCache(db_path=db_path)
        await cache.put("k", [0.5, 0.25])
        await cache.close()

        reopened = SQLiteEmbeddingCache(db_path=db_path)
        assert await reopened.get("k") == [0.5, 0.25]
        assert reopened.get_stats()["hits"] == 1
        await reopened.close()

    def test_protocol_compliance(self, tmp_path):
        assert isinstance(SQLiteEmbeddingCache(db_path=str(tmp_path / "e.db")), EmbeddingCacheProtocol)
