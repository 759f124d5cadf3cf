from .retrieval import (
    Confidence,
    ConfidenceLevel,
    ConflictInfo,
    DedupedCandidate,
    MatchType,
    QueryIntent,
    QueryIntentResult,
    RAGIntentDecision,
    RAGResult,
    RankedCandidate,
    RetrievalOptions,
    SearchCandidate,
    SourceType,
)

__all__ = [
    "Confidence",
    "ConfidenceLevel",
    "ConflictInfo",
    "DedupedCandidate",
    "MatchType",
    "QueryIntent",
    "QueryIntentResult",
    "RAGIntentDecision",
    "RAGResult",
    "RankedCandidate",
    "RetrievalOptions",
    "SearchCandidate",
    "SourceType",
]
