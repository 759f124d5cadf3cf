"""
Runtime RAG Metrics Collector
==============================
Collects retrieval quality metrics at runtime, over a sliding window of the
most recent retrieve_context calls.

Metrics:
- total_retrievals: calls since start (or last reset)
- skipped / failed: calls short-circuited by intent or by a retrieval failure
- avg_chunks_retrieved: mean survivors per call
- avg_top_score: mean best candidate score
- confidence_distribution: count per confidence level
- expansion_rate: share of calls whose query was rewritten
- conflict_rate: share of calls that surfaced at least one conflict group
- classification_fallback_rate / expansion_fallback_rate: share of calls where
  the stage failed and the pipeline continued with its fallback value
- avg_retrieval_time_ms
"""

from __future__ import annotations

import logging
import time
from collections import Counter, deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from govconnect_rag.domain.entities.retrieval import RAGResult

logger = logging.getLogger(__name__)


@dataclass
class RetrievalRecord:
    """One retrieve_context call"""

    query: str
    intent: str | None
    chunks_retrieved: int
    top_score: float
    confidence_level: str
    conflict_groups: int
    retrieval_time_ms: float
    expanded: bool = False
    failed: bool = False
    fallback_stages: tuple[str, ...] = ()
    timestamp: float = field(default_factory=time.time)

    @property
    def skipped(self) -> bool:
        return self.intent == "skip"


class RAGMetricsCollector:
    """
    Runtime retrieval metrics collector.

    Usage:
        collector = RAGMetricsCollector()
        collector.record_result(query, result)
        metrics = collector.get_metrics()
    """

    def __init__(self, window_size: int = 100):
        """
        Args:
            window_size: Number of recent records used for the aggregates
        """
        self._records: deque[RetrievalRecord] = deque(maxlen=window_size)
        self._total_retrievals: int = 0
        self._window_size = window_size

    def record_result(
        self,
        query: str,
        result: RAGResult,
        failed: bool = False,
        fallback_stages: Sequence[str] = (),
    ) -> None:
        """
        Record one retrieval result.

        Args:
            query: Original citizen query
            result: Value returned by retrieve_context
            failed: True when the retrieval stage raised and the result is the empty fallback
            fallback_stages: Recoverable stages that failed ("classification", "expansion")
        """
        self._total_retrievals += 1

        top_score = max((c.score for c in result.relevant_chunks), default=0.0)
        expanded = bool(result.expanded_query) and result.expanded_query != query

        record = RetrievalRecord(
            query=query,
            intent=result.intent.value if result.intent else None,
            chunks_retrieved=result.total_results,
            top_score=top_score,
            confidence_level=result.confidence.level.value,
            conflict_groups=len(result.conflicts),
            retrieval_time_ms=float(result.search_time_ms),
            expanded=expanded,
            failed=failed,
            fallback_stages=tuple(fallback_stages),
        )
        self._records.append(record)

        logger.debug(
            f"RAG metric recorded: chunks={record.chunks_retrieved}, "
            f"top={top_score:.2f}, confidence={record.confidence_level}"
        )

    def get_metrics(self) -> dict[str, Any]:
        """
        Returns:
            {
                "total_retrievals": int,
                "window_size": int,
                "records_in_window": int,
                "skipped": int,
                "failed": int,
                "avg_chunks_retrieved": float,
                "avg_top_score": float,
                "confidence_distribution": dict[str, int],
                "expansion_rate": float,
                "conflict_rate": float,
                "classification_fallback_rate": float,
                "expansion_fallback_rate": float,
                "avg_retrieval_time_ms": float,
                "recent_queries": list[str],
            }
        """
        if not self._records:
            return {
                "total_retrievals": self._total_retrievals,
                "window_size": self._window_size,
                "records_in_window": 0,
                "skipped": 0,
                "failed": 0,
                "avg_chunks_retrieved": 0.0,
                "avg_top_score": 0.0,
                "confidence_distribution": {},
                "expansion_rate": 0.0,
                "conflict_rate": 0.0,
                "classification_fallback_rate": 0.0,
                "expansion_fallback_rate": 0.0,
                "avg_retrieval_time_ms": 0.0,
                "recent_queries": [],
            }

        records = list(self._records)
        n = len(records)

        # Skipped calls never searched, keep them out of the quality averages
        searched = [r for r in records if not r.skipped and not r.failed]
        m = len(searched) or 1

        return {
            "total_retrievals": self._total_retrievals,
            "window_size": self._window_size,
            "records_in_window": n,
            "skipped": sum(1 for r in records if r.skipped),
            "failed": sum(1 for r in records if r.failed),
            "avg_chunks_retrieved": round(sum(r.chunks_retrieved for r in searched) / m, 2),
            "avg_top_score": round(sum(r.top_score for r in searched) / m, 4),
            "confidence_distribution": dict(Counter(r.confidence_level for r in records)),
            "expansion_rate": round(sum(1 for r in searched if r.expanded) / m, 4),
            "conflict_rate": round(sum(1 for r in searched if r.conflict_groups) / m, 4),
            "classification_fallback_rate": self._fallback_rate(records, "classification"),
            "expansion_fallback_rate": self._fallback_rate(records, "expansion"),
            "avg_retrieval_time_ms": round(sum(r.retrieval_time_ms for r in records) / n, 2),
            "recent_queries": [r.query[:50] for r in records[-5:]],
        }

    def reset(self) -> None:
        self._records.clear()
        self._total_retrievals = 0

    @staticmethod
    def _fallback_rate(records: list[RetrievalRecord], stage: str) -> float:
        return round(sum(1 for r in records if stage in r.fallback_stages) / len(records), 4)
