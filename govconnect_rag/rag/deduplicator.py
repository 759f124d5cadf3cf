"""
Deduplicator / Conflict Detector
================================
Walks score-sorted candidates once, comparing each word set against every
already accepted candidate (Jaccard):

    >= duplicate_threshold              → dropped, the earlier candidate wins
    [conflict_threshold, duplicate)     → kept, flagged as conflicting
    < conflict_threshold                → kept, unflagged

A flagged candidate joins the conflict group of the most similar accepted
candidate it conflicts with, but only when it is within the conflict band of
every member of that group. An ungrouped anchor opens a fresh group. When no
anchor qualifies the candidate stays unflagged, so group members are always
pairwise in [conflict_threshold, duplicate_threshold).

Running it again on its own output changes nothing: survivors are pairwise
below the duplicate threshold and existing group ids are kept as they are.
"""

import logging
from collections.abc import Sequence

from govconnect_rag.domain.entities.retrieval import DedupedCandidate, SearchCandidate
from govconnect_rag.shared.constants import CONFLICT_THRESHOLD, DUPLICATE_THRESHOLD

from .similarity import jaccard, word_set

logger = logging.getLogger(__name__)


class Deduplicator:
    def __init__(
        self,
        duplicate_threshold: float = DUPLICATE_THRESHOLD,
        conflict_threshold: float = CONFLICT_THRESHOLD,
    ):
        if conflict_threshold >= duplicate_threshold:
            raise ValueError("conflict_threshold must be lower than duplicate_threshold")
        self.duplicate_threshold = duplicate_threshold
        self.conflict_threshold = conflict_threshold

    def dedupe(self, candidates: Sequence[SearchCandidate]) -> list[DedupedCandidate]:
        """
        Args:
            candidates: Re-ranked candidates, best first

        Returns:
            Survivors in input order, with conflict groups assigned
        """
        accepted: list[DedupedCandidate] = []
        accepted_words: list[set[str]] = []

        existing_groups = [
            c.conflict_group for c in candidates if getattr(c, "conflict_group", None) is not None
        ]
        next_group = max(existing_groups, default=0) + 1
        dropped = 0

        for candidate in candidates:
            words = word_set(candidate.content)
            similarities = [jaccard(words, other) for other in accepted_words]

            if any(s >= self.duplicate_threshold for s in similarities):
                dropped += 1
                continue

            survivor = DedupedCandidate.from_candidate(candidate)
            if survivor.conflict_group is None:
                anchor_idx = self._find_anchor(similarities, accepted)
                if anchor_idx is not None:
                    anchor = accepted[anchor_idx]
                    if anchor.conflict_group is None:
                        anchor.conflict_group = next_group
                        next_group += 1
                    survivor.conflict_group = anchor.conflict_group

            accepted.append(survivor)
            accepted_words.append(words)

        if dropped:
            logger.debug(f"Dedup dropped {dropped} near-duplicate candidates")
        return accepted

    def _find_anchor(
        self, similarities: list[float], accepted: list[DedupedCandidate]
    ) -> int | None:
        """Most similar accepted candidate whose whole group the newcomer conflicts with."""
        in_band = [i for i, s in enumerate(similarities) if self._in_conflict_band(s)]
        for idx in sorted(in_band, key=similarities.__getitem__, reverse=True):
            group = accepted[idx].conflict_group
            if group is None:
                return idx
            members = [i for i, c in enumerate(accepted) if c.conflict_group == group]
            if all(self._in_conflict_band(similarities[i]) for i in members):
                return idx
        return None

    def _in_conflict_band(self, similarity: float) -> bool:
        return self.conflict_threshold <= similarity < self.duplicate_threshold
