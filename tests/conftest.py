import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from dotenv import load_dotenv

from govconnect_rag.domain.entities.retrieval import SearchCandidate, SourceType
from govconnect_rag.monitoring.logger import ServiceLogger


def pytest_configure(config):
    """Load the test environment before collection"""
    project_root = Path(__file__).parent.parent

    env_file = os.environ.get("ENV_FILE", ".env.test")
    env_path = project_root / env_file

    if env_path.exists():
        load_dotenv(env_path, override=True)
        print(f"[conftest] Applied test overrides from: {env_path}")


@pytest.fixture(autouse=True)
def clear_logger_instances():
    ServiceLogger._instances.clear()
    yield
    ServiceLogger._instances.clear()


@pytest.fixture
def make_candidate():
    """Factory for search candidates with sensible defaults"""

    def _make(
        id: str = "k1",
        content: str = "Kantor kelurahan buka Senin sampai Jumat pukul 08.00-16.00.",
        score: float = 0.8,
        source_type: SourceType = SourceType.KNOWLEDGE,
        source: str = "",
        **metadata,
    ) -> SearchCandidate:
        return SearchCandidate(
            id=id,
            content=content,
            score=score,
            source_type=source_type,
            source=source,
            metadata=metadata,
        )

    return _make


@pytest.fixture
def embedding_gateway():
    """Mock embedding gateway returning a fixed vector"""
    mock = MagicMock()
    mock.generate_embedding = AsyncMock(return_value=[0.1] * 768)
    mock.close = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def vector_store():
    """Mock vector store - no pgvector dependency"""
    mock = MagicMock()
    mock.search_vectors = AsyncMock(return_value=[])
    mock.record_batch_retrievals = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def keyword_store():
    mock = MagicMock()
    mock.search_keywords = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def generator():
    """Mock text generation gateway with credentials configured"""
    mock = MagicMock()
    mock.has_credentials = MagicMock(return_value=True)
    mock.generate = AsyncMock(return_value="")
    return mock
