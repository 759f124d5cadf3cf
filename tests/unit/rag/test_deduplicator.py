"""Tests for deduplication and conflict grouping."""

import pytest

from govconnect_rag.domain.entities.retrieval import DedupedCandidate
from govconnect_rag.rag.deduplicator import Deduplicator
from govconnect_rag.rag.similarity import jaccard, word_set


def _words(count: int, start: int = 0) -> str:
    return " ".join(f"kata{i:03d}" for i in range(start, start + count))


class TestDeduplicator:
    @pytest.fixture
    def dedup(self):
        return Deduplicator()

    def test_empty(self, dedup):
        assert dedup.dedupe([]) == []

    def test_invalid_thresholds(self):
        with pytest.raises(ValueError):
            Deduplicator(duplicate_threshold=0.5, conflict_threshold=0.5)

    def test_similarity_at_duplicate_threshold_is_dropped(self, dedup, make_candidate):
        # |A ∩ B| = 70, |A ∪ B| = 100
        result = dedup.dedupe(
            [
                make_candidate(id="a", content=_words(100), score=0.9),
                make_candidate(id="b", content=_words(70), score=0.8),
            ]
        )
        assert [c.id for c in result] == ["a"]

    def test_similarity_just_below_duplicate_is_conflict(self, dedup, make_candidate):
        result = dedup.dedupe(
            [
                make_candidate(id="a", content=_words(100), score=0.9),
                make_candidate(id="b", content=_words(69), score=0.8),
            ]
        )
        assert [c.id for c in result] == ["a", "b"]
        assert result[0].conflict_group is not None
        assert result[0].conflict_group == result[1].conflict_group

    def test_similarity_below_conflict_threshold_is_unflagged(self, dedup, make_candidate):
        result = dedup.dedupe(
            [
                make_candidate(id="a", content=_words(100), score=0.9),
                make_candidate(id="b", content=_words(34), score=0.8),
            ]
        )
        assert len(result) == 2
        assert all(c.conflict_group is None for c in result)

    def test_conflict_threshold_is_inclusive(self, dedup, make_candidate):
        result = dedup.dedupe(
            [
                make_candidate(id="a", content=_words(100), score=0.9),
                make_candidate(id="b", content=_words(35), score=0.8),
            ]
        )
        assert all(c.in_conflict for c in result)

    def test_village_head_conflict(self, dedup, make_candidate):
        result = dedup.dedupe(
            [
                make_candidate(
                    id="k1",
                    content="Kepala Desa Sukamaju adalah Bapak Ahmad Suryadi sejak 2019.",
                    score=0.88,
                    source="Profil Desa 2023",
                ),
                make_candidate(
                    id="k2",
                    content="Kepala Desa Sukamaju adalah Bapak Budi Santoso sejak 2024.",
                    score=0.85,
                    source="Pengumuman 2024",
                ),
                make_candidate(id="k3", content="Posyandu dibuka setiap Rabu pagi.", score=0.6),
            ]
        )
        assert len(result) == 3
        assert result[0].conflict_group == result[1].conflict_group == 1
        assert result[2].conflict_group is None

    def test_separate_topics_get_distinct_groups(self, dedup, make_candidate):
        result = dedup.dedupe(
            [
                make_candidate(id="a1", content=_words(100), score=0.9),
                make_candidate(id="b1", content=_words(100, start=500), score=0.85),
                make_candidate(id="a2", content=_words(50), score=0.8),
                make_candidate(id="b2", content=_words(50, start=500), score=0.75),
            ]
        )
        groups = {c.id: c.conflict_group for c in result}
        assert groups["a1"] == groups["a2"]
        assert groups["b1"] == groups["b2"]
        assert groups["a1"] != groups["b1"]

    def test_chained_candidate_does_not_join_group(self, dedup, make_candidate):
        # J(a, b) = J(b, c) = 0.5 but J(a, c) = 0.2
        result = dedup.dedupe(
            [
                make_candidate(id="a", content=_words(12), score=0.9),
                make_candidate(id="b", content=_words(12, start=4), score=0.85),
                make_candidate(id="c", content=_words(12, start=8), score=0.8),
            ]
        )
        groups = {c.id: c.conflict_group for c in result}
        assert groups["a"] == groups["b"] == 1
        assert groups["c"] is None
        assert dedup.dedupe(result)[2].conflict_group is None

    def test_candidate_conflicting_with_every_member_joins(self, dedup, make_candidate):
        # J(a, b) = 12/28, J(a, c) = J(b, c) = 16/24
        result = dedup.dedupe(
            [
                make_candidate(id="a", content=_words(20), score=0.9),
                make_candidate(id="b", content=_words(20, start=8), score=0.85),
                make_candidate(id="c", content=_words(20, start=4), score=0.8),
            ]
        )
        assert {c.conflict_group for c in result} == {1}

    def test_group_members_pairwise_in_conflict_band(self, dedup, make_candidate):
        candidates = [
            make_candidate(id=f"c{start}", content=_words(12, start=start), score=0.9 - start / 100)
            for start in range(0, 40, 4)
        ]
        result = dedup.dedupe(candidates)
        assert any(c.in_conflict for c in result)

        for i, first in enumerate(result):
            for second in result[i + 1 :]:
                if first.conflict_group is None or first.conflict_group != second.conflict_group:
                    continue
                similarity = jaccard(word_set(first.content), word_set(second.content))
                assert 0.35 <= similarity < 0.70

    def test_idempotent(self, dedup, make_candidate):
        candidates = [
            make_candidate(id="a", content=_words(100), score=0.9),
            make_candidate(id="b", content=_words(80), score=0.85),
            make_candidate(id="c", content=_words(60), score=0.8),
            make_candidate(id="d", content=_words(40, start=300), score=0.7),
        ]
        once = dedup.dedupe(candidates)
        twice = dedup.dedupe(once)

        assert [c.id for c in twice] == [c.id for c in once]
        assert [c.conflict_group for c in twice] == [c.conflict_group for c in once]

    def test_returns_deduped_candidates(self, dedup, make_candidate):
        result = dedup.dedupe([make_candidate()])
        assert isinstance(result[0], DedupedCandidate)
        assert result[0].original_score == 0.8
