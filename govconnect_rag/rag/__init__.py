"""
RAG retrieval pipeline

Intent classification, query expansion, hybrid retrieval, RRF re-ranking,
deduplication with conflict detection, confidence estimation and context
assembly.
"""

from .confidence import ConfidenceEstimator
from .context_builder import AssembledContext, ContextAssembler, auto_resolve_conflicts, compress_content
from .deduplicator import Deduplicator
from .embedding_cache import InMemoryEmbeddingCache, SQLiteEmbeddingCache
from .embedding_gateway import LiteLLMEmbeddingGateway
from .expansion_cache import ExpansionCache
from .hybrid_retriever import HybridRetriever
from .hybrid_search import LocalHybridSearch, reciprocal_rank_fusion
from .intent_classifier import LLMIntentClassifier, QueryIntentClassifier
from .query_expander import QueryExpander
from .rag_service import RAGService, StageOutcome
from .reranker import RRFReranker
from .spam_guard import is_spam_message

__all__ = [
    "AssembledContext",
    "ConfidenceEstimator",
    "ContextAssembler",
    "Deduplicator",
    "ExpansionCache",
    "HybridRetriever",
    "InMemoryEmbeddingCache",
    "LLMIntentClassifier",
    "LiteLLMEmbeddingGateway",
    "LocalHybridSearch",
    "QueryExpander",
    "QueryIntentClassifier",
    "RAGService",
    "RRFReranker",
    "SQLiteEmbeddingCache",
    "StageOutcome",
    "auto_resolve_conflicts",
    "compress_content",
    "is_spam_message",
    "reciprocal_rank_fusion",
]
