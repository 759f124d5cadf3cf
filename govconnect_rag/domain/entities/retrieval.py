"""
Retrieval entities
==================
Value types flowing through the retrieval pipeline.

    SearchCandidate   ─ raw hit from the vector / keyword / hybrid store
    RankedCandidate   ─ candidate after RRF fusion (score recomputed)
    DedupedCandidate  ─ survivor of deduplication, optional conflict group
    RAGResult         ─ immutable return value of RAGService.retrieve_context
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any

from govconnect_rag.domain.exceptions import CandidateValidationError
from govconnect_rag.shared.constants import (
    DEFAULT_MIN_SCORE,
    DEFAULT_SOURCE_TYPES,
    DEFAULT_TOP_K,
)


class SourceType(str, Enum):
    """Where a candidate came from"""

    KNOWLEDGE = "knowledge"  # Curated knowledge-base entry
    DOCUMENT = "document"  # Chunk of an uploaded document


class QueryIntent(str, Enum):
    """Whether retrieval is worth running for a query"""

    SKIP = "skip"
    REQUIRED = "required"
    OPTIONAL = "optional"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class MatchType(str, Enum):
    """Which list(s) of a hybrid search a candidate appeared in"""

    VECTOR = "vector"
    KEYWORD = "keyword"
    BOTH = "both"


@dataclass
class SearchCandidate:
    """One retrieved fragment, alive only for the duration of one retrieval call."""

    id: str
    content: str
    score: float  # 0~1 vector similarity
    source_type: SourceType
    source: str = ""  # Provenance label (knowledge title / document title)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.source_type, SourceType):
            self.source_type = SourceType(self.source_type)
        if not 0.0 <= self.score <= 1.0:
            raise CandidateValidationError(
                f"Candidate {self.id!r} score must be within [0, 1], got {self.score}",
                field="score",
                value=self.score,
            )

    @property
    def category(self) -> str | None:
        return self.metadata.get("category")

    @property
    def section_title(self) -> str | None:
        return self.metadata.get("section_title") or self.metadata.get("sectionTitle")

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict"""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = value.value if isinstance(value, Enum) else value
        return data


@dataclass
class RankedCandidate(SearchCandidate):
    """A candidate whose score was recomputed by rank fusion (capped at 1.0)."""

    original_score: float | None = None
    vector_rank: int | None = None
    keyword_rank: int | None = None
    rrf_score: float = 0.0
    match_type: MatchType | None = None

    @classmethod
    def from_candidate(cls, candidate: SearchCandidate, **overrides: Any) -> RankedCandidate:
        """Lift a plain candidate into a ranked one, keeping every field it already carries."""
        values = {f.name: getattr(candidate, f.name) for f in fields(candidate)}
        values["metadata"] = dict(candidate.metadata)
        if values.get("original_score") is None:
            values["original_score"] = candidate.score
        values.update(overrides)
        allowed = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in allowed})


@dataclass
class DedupedCandidate(RankedCandidate):
    """Survivor of deduplication; `conflict_group` is set only for same-topic clusters."""

    conflict_group: int | None = None

    @classmethod
    def from_candidate(cls, candidate: SearchCandidate, **overrides: Any) -> DedupedCandidate:
        return super().from_candidate(candidate, **overrides)  # type: ignore[return-value]

    @property
    def in_conflict(self) -> bool:
        return self.conflict_group is not None


@dataclass(frozen=True)
class ConflictInfo:
    """Structured report of one conflict group (first two members)."""

    source1: str
    source2: str
    content_snippet1: str
    content_snippet2: str
    similarity_score: float
    group_id: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "source1": self.source1,
            "source2": self.source2,
            "content_snippet1": self.content_snippet1,
            "content_snippet2": self.content_snippet2,
            "similarity_score": round(self.similarity_score, 3),
            "group_id": self.group_id,
        }


@dataclass(frozen=True)
class Confidence:
    """Coarse verdict on how trustworthy a retrieval result is for grounding an answer."""

    level: ConfidenceLevel
    score: float
    reason: str
    suggest_fallback: bool

    @classmethod
    def none(cls, reason: str = "No relevant knowledge found") -> Confidence:
        return cls(level=ConfidenceLevel.NONE, score=0.0, reason=reason, suggest_fallback=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "score": round(self.score, 4),
            "reason": self.reason,
            "suggest_fallback": self.suggest_fallback,
        }


@dataclass(frozen=True)
class QueryIntentResult:
    """Transient classification produced by the query intent classifier."""

    intent: QueryIntent
    categories: list[str] = field(default_factory=list)
    confidence: float | None = None
    reason: str = ""


@dataclass(frozen=True)
class RAGIntentDecision:
    """Raw answer of the delegated micro-classifier."""

    decision: str  # "RAG_REQUIRED" | "RAG_SKIP"
    confidence: float
    categories: list[str] = field(default_factory=list)
    reason: str | None = None


@dataclass
class RetrievalOptions:
    """Options recognized by RAGService.retrieve_context

    top_k / min_score left as None fall back to the service defaults
    (RAG_DEFAULT_TOP_K / RAG_DEFAULT_MIN_SCORE).
    """

    top_k: int | None = None
    min_score: float | None = None
    categories: list[str] | None = None
    source_types: tuple[str, ...] = DEFAULT_SOURCE_TYPES
    village_id: str | None = None
    use_query_expansion: bool = True
    use_hybrid_search: bool = True
    session_context: dict[str, Any] | None = None

    def __post_init__(self):
        self.source_types = tuple(
            s.value if isinstance(s, SourceType) else str(s) for s in self.source_types
        )

    def with_defaults(
        self, top_k: int = DEFAULT_TOP_K, min_score: float = DEFAULT_MIN_SCORE
    ) -> RetrievalOptions:
        """Copy with unset top_k / min_score filled in; explicit values win."""
        if self.top_k is not None and self.min_score is not None:
            return self
        return replace(
            self,
            top_k=top_k if self.top_k is None else self.top_k,
            min_score=min_score if self.min_score is None else self.min_score,
        )


@dataclass(frozen=True)
class RAGResult:
    """Return value of one retrieve_context call."""

    relevant_chunks: list[DedupedCandidate]
    context_string: str
    total_results: int
    search_time_ms: int
    confidence: Confidence
    conflicts: list[ConflictInfo] = field(default_factory=list)
    intent: QueryIntent | None = None
    expanded_query: str | None = None

    @classmethod
    def empty(
        cls,
        search_time_ms: int,
        confidence: Confidence | None = None,
        intent: QueryIntent | None = None,
        expanded_query: str | None = None,
    ) -> RAGResult:
        return cls(
            relevant_chunks=[],
            context_string="",
            total_results=0,
            search_time_ms=search_time_ms,
            confidence=confidence or Confidence.none(),
            conflicts=[],
            intent=intent,
            expanded_query=expanded_query,
        )

    @property
    def has_knowledge(self) -> bool:
        return bool(self.relevant_chunks) and self.confidence.level != ConfidenceLevel.NONE

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict"""
        return {
            "relevant_chunks": [c.to_dict() for c in self.relevant_chunks],
            "context_string": self.context_string,
            "total_results": self.total_results,
            "search_time_ms": self.search_time_ms,
            "confidence": self.confidence.to_dict(),
            "conflicts": [c.to_dict() for c in self.conflicts],
            "intent": self.intent.value if self.intent else None,
            "expanded_query": self.expanded_query,
        }
