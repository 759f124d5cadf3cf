"""
GovConnect RAG
Retrieval core of the GovConnect village / sub-district chatbot.

Usage:
    from govconnect_rag import RAGConfig, RAGService, RetrievalOptions, is_spam_message

    service = RAGService.from_config(RAGConfig.from_env_validated(), vector_store, keyword_store)
    if not is_spam_message(message):
        result = await service.retrieve_context(message, RetrievalOptions(village_id="desa-01"))
"""

from govconnect_rag.domain.entities.retrieval import (
    Confidence,
    ConfidenceLevel,
    QueryIntent,
    RAGResult,
    RetrievalOptions,
    SearchCandidate,
    SourceType,
)
from govconnect_rag.domain.exceptions import GovConnectRAGError, RetrievalError
from govconnect_rag.infrastructure.config.config_manager import RAGConfig
from govconnect_rag.rag.rag_service import RAGService
from govconnect_rag.rag.spam_guard import is_spam_message

__version__ = "0.1.0"

__all__ = [
    "Confidence",
    "ConfidenceLevel",
    "GovConnectRAGError",
    "QueryIntent",
    "RAGConfig",
    "RAGResult",
    "RAGService",
    "RetrievalError",
    "RetrievalOptions",
    "SearchCandidate",
    "SourceType",
    "is_spam_message",
]
