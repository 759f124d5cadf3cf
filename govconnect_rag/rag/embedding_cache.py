"""Query embedding cache with Protocol interface and two backends.

- InMemoryEmbeddingCache: dict-based, FIFO eviction (default)
- SQLiteEmbeddingCache: aiosqlite-backed, LRU eviction, survives restarts

Keys come from `embedding_cache_key`, which folds the request shape (model,
task type, dimensionality) into the hash so vectors of different shapes never
collide.
"""

from __future__ import annotations

import hashlib
import os
import time
from typing import Protocol, runtime_checkable

import aiosqlite
import numpy as np


def embedding_cache_key(text: str, model: str, task_type: str, dimensions: int) -> str:
    normalized = " ".join(text.lower().split())
    payload = f"{model}|{task_type}|{dimensions}|{normalized}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@runtime_checkable
class EmbeddingCacheProtocol(Protocol):
    """Protocol for embedding cache backends."""

    async def get(self, key: str) -> list[float] | None:
        ...

    async def put(self, key: str, embedding: list[float]) -> None:
        ...

    def get_stats(self) -> dict[str, float]:
        """
        Returns:
            Dict with hits, misses, max_size, hit_rate (+ size when cheap to compute)
        """
        ...

    async def close(self) -> None:
        ...


class InMemoryEmbeddingCache:
    """Dict-based cache, FIFO eviction at max_size."""

    def __init__(self, max_size: int = 1000):
        self._cache: dict[str, list[float]] = {}
        self._max_size = max_size
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> list[float] | None:
        vector = self._cache.get(key)
        if vector is None:
            self._misses += 1
            return None
        self._hits += 1
        return vector

    async def put(self, key: str, embedding: list[float]) -> None:
        if key not in self._cache and len(self._cache) >= self._max_size:
            del self._cache[next(iter(self._cache))]
        self._cache[key] = embedding

    def get_stats(self) -> dict[str, float]:
        total = self._hits + self._misses
        return {
            "size": len(self._cache),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / max(1, total),
        }

    async def close(self) -> None:
        self._cache.clear()


class SQLiteEmbeddingCache:
    """SQLite-backed cache with LRU eviction.

    Vectors are stored as float32 blobs; the connection is opened lazily on
    first use.
    """

    def __init__(self, db_path: str = "data/query_embeddings.db", max_size: int = 10000):
        """
        Args:
            db_path: SQLite database file
            max_size: Maximum number of entries before LRU eviction
        """
        self._db_path = db_path
        self._max_size = max_size
        self._db: aiosqlite.Connection | None = None
        self._hits = 0
        self._misses = 0

    async def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
            self._db = await aiosqlite.connect(self._db_path)
            await self._db.execute(
                """
                CREATE TABLE IF NOT EXISTS query_embeddings (
                    key TEXT PRIMARY KEY,
                    vector BLOB NOT NULL,
                    last_used REAL NOT NULL
                )
                """
            )
            await self._db.execute(
                "CREATE INDEX IF NOT EXISTS idx_query_embeddings_last_used "
                "ON query_embeddings(last_used)"
            )
            await self._db.commit()
        return self._db

    async def get(self, key: str) -> list[float] | None:
        db = await self._connection()
        cursor = await db.execute("SELECT vector FROM query_embeddings WHERE key = ?", (key,))
        row = await cursor.fetchone()
        if row is None:
            self._misses += 1
            return None

        await db.execute(
            "UPDATE query_embeddings SET last_used = ? WHERE key = ?", (time.time(), key)
        )
        await db.commit()
        self._hits += 1
        return np.frombuffer(row[0], dtype=np.float32).tolist()

    async def put(self, key: str, embedding: list[float]) -> None:
        db = await self._connection()
        blob = np.asarray(embedding, dtype=np.float32).tobytes()
        await db.execute(
            "INSERT OR REPLACE INTO query_embeddings (key, vector, last_used) VALUES (?, ?, ?)",
            (key, blob, time.time()),
        )

        cursor = await db.execute("SELECT COUNT(*) FROM query_embeddings")
        (count,) = await cursor.fetchone()
        if count > self._max_size:
            await db.execute(
                """
                DELETE FROM query_embeddings
                WHERE key IN (
                    SELECT key FROM query_embeddings ORDER BY last_used ASC LIMIT ?
                )
                """,
                (count - self._max_size,),
            )
        await db.commit()

    def get_stats(self) -> dict[str, float]:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "max_size": self._max_size,
            "hit_rate": self._hits / max(1, total),
        }

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
