"""Tests for the runtime RAG metrics collector."""

from govconnect_rag.domain.entities.retrieval import (
    Confidence,
    ConfidenceLevel,
    ConflictInfo,
    DedupedCandidate,
    QueryIntent,
    RAGResult,
    SourceType,
)
from govconnect_rag.monitoring.rag_metrics import RAGMetricsCollector


def _result(scores, intent=QueryIntent.REQUIRED, expanded=None, conflicts=0, level="high"):
    chunks = [
        DedupedCandidate(id=str(i), content="isi", score=s, source_type=SourceType.KNOWLEDGE)
        for i, s in enumerate(scores)
    ]
    conflict = ConflictInfo("a", "b", "x", "y", 0.5, 1)
    return RAGResult(
        relevant_chunks=chunks,
        context_string="",
        total_results=len(chunks),
        search_time_ms=100,
        confidence=Confidence(ConfidenceLevel(level), 0.9, "", False),
        conflicts=[conflict] * conflicts,
        intent=intent,
        expanded_query=expanded,
    )


class TestRAGMetricsCollector:
    def test_empty(self):
        metrics = RAGMetricsCollector().get_metrics()
        assert metrics["total_retrievals"] == 0
        assert metrics["records_in_window"] == 0
        assert metrics["avg_top_score"] == 0.0
        assert metrics["expansion_fallback_rate"] == 0.0

    def test_aggregates(self):
        collector = RAGMetricsCollector()
        collector.record_result("jam buka kantor", _result([0.9, 0.8], expanded="jam buka kantor jadwal"))
        collector.record_result("siapa kepala desa", _result([0.7], conflicts=1, level="medium"))

        metrics = collector.get_metrics()
        assert metrics["total_retrievals"] == 2
        assert metrics["avg_chunks_retrieved"] == 1.5
        assert metrics["avg_top_score"] == 0.8
        assert metrics["expansion_rate"] == 0.5
        assert metrics["conflict_rate"] == 0.5
        assert metrics["confidence_distribution"] == {"high": 1, "medium": 1}
        assert metrics["recent_queries"] == ["jam buka kantor", "siapa kepala desa"]

    def test_unchanged_expansion_not_counted(self):
        collector = RAGMetricsCollector()
        collector.record_result("jam buka", _result([0.9], expanded="jam buka"))
        assert collector.get_metrics()["expansion_rate"] == 0.0

    def test_skipped_and_failed_excluded_from_quality(self):
        collector = RAGMetricsCollector()
        collector.record_result("halo", RAGResult.empty(1, intent=QueryIntent.SKIP))
        collector.record_result(
            "jam buka kantor",
            RAGResult.empty(5, confidence=Confidence.none("RAG retrieval failed")),
            failed=True,
        )
        collector.record_result("syarat ktp", _result([0.6]))

        metrics = collector.get_metrics()
        assert metrics["skipped"] == 1
        assert metrics["failed"] == 1
        assert metrics["avg_top_score"] == 0.6
        assert metrics["avg_chunks_retrieved"] == 1.0

    def test_stage_fallback_rates(self):
        collector = RAGMetricsCollector()
        collector.record_result(
            "jam buka kantor", _result([0.9]), fallback_stages=["classification", "expansion"]
        )
        collector.record_result("syarat ktp", _result([0.7]), fallback_stages=["expansion"])
        collector.record_result("siapa kepala desa", _result([0.8]))
        collector.record_result("halo", RAGResult.empty(1, intent=QueryIntent.SKIP))

        metrics = collector.get_metrics()
        assert metrics["classification_fallback_rate"] == 0.25
        assert metrics["expansion_fallback_rate"] == 0.5

    def test_window(self):
        collector = RAGMetricsCollector(window_size=3)
        for i in range(5):
            collector.record_result(f"q{i}", _result([0.5]))

        metrics = collector.get_metrics()
        assert metrics["total_retrievals"] == 5
        assert metrics["records_in_window"] == 3
        assert metrics["recent_queries"] == ["q2", "q3", "q4"]

    def test_reset(self):
        collector = RAGMetricsCollector()
        collector.record_result("q", _result([0.5]))
        collector.reset()
        assert collector.get_metrics()["total_retrievals"] == 0
