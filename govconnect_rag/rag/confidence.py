"""
Confidence Estimator
Turns a retrieval result set into a coarse trust verdict for the answering layer.

    composite = 0.50 * top
              + 0.25 * mean
              + 0.15 * min(n / 3, 1)
              + 0.10 * (1 - min(2 * variance, 1))    (population variance)

Level thresholds, first match wins:
    high    composite >= 0.8 and top >= 0.85
    medium  composite >= 0.6 and top >= 0.7
    low     composite >= 0.4 or  top >= 0.6        (fallback suggested)
    none    otherwise                              (fallback suggested)
"""

from collections.abc import Sequence

import numpy as np

from govconnect_rag.domain.entities.retrieval import Confidence, ConfidenceLevel, SearchCandidate
from govconnect_rag.shared.constants import (
    CONFIDENCE_COUNT_SATURATION,
    CONFIDENCE_LEVEL_BANDS,
    CONFIDENCE_WEIGHTS,
)


class ConfidenceEstimator:
    """
    Usage:
        estimator = ConfidenceEstimator()
        confidence = estimator.estimate(chunks)
        if confidence.suggest_fallback:
            ...
    """

    def __init__(
        self,
        weights: dict[str, float] | None = None,
        bands: dict[str, tuple[float, float]] | None = None,
    ):
        """
        Args:
            weights: Override for the top / average / count / consistency weights
            bands: Override for the high / medium / low (composite, top score) thresholds
        """
        self.weights = {**CONFIDENCE_WEIGHTS, **(weights or {})}
        self.bands = {**CONFIDENCE_LEVEL_BANDS, **(bands or {})}

    def composite_score(self, scores: Sequence[float]) -> float:
        """Weighted composite of the score distribution (candidates best first)."""
        values = np.asarray(scores, dtype=float)
        top = float(values[0])
        mean = float(values.mean())
        variance = float(values.var())  # ddof=0
        consistency = 1.0 - min(variance * 2, 1.0)
        count_factor = min(len(values) / CONFIDENCE_COUNT_SATURATION, 1.0)

        return (
            top * self.weights["top"]
            + mean * self.weights["average"]
            + count_factor * self.weights["count"]
            + consistency * self.weights["consistency"]
        )

    def estimate(self, candidates: Sequence[SearchCandidate]) -> Confidence:
        """
        Args:
            candidates: Final result set, sorted by score descending

        Returns:
            Confidence verdict
        """
        if not candidates:
            return Confidence.none()

        scores = [c.score for c in candidates]
        top = scores[0]
        score = self.composite_score(scores)
        pct = f"{top * 100:.0f}%"

        high_composite, high_top = self.bands["high"]
        medium_composite, medium_top = self.bands["medium"]
        low_composite, low_top = self.bands["low"]

        if score >= high_composite and top >= high_top:
            return Confidence(
                ConfidenceLevel.HIGH, score, f"Strong match found ({pct} relevance)", False
            )
        if score >= medium_composite and top >= medium_top:
            return Confidence(
                ConfidenceLevel.MEDIUM, score, f"Relevant knowledge found ({pct} relevance)", False
            )
        if score >= low_composite or top >= low_top:
            return Confidence(
                ConfidenceLevel.LOW, score, f"Partial match found ({pct} relevance)", True
            )
        return Confidence(ConfidenceLevel.NONE, score, f"No strong matches (best: {pct})", True)
