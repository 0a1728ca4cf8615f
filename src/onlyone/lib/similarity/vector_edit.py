"""Vector + edit-distance composite (the default strategy).

    editSim   = 1 - levenshtein(text1, text2) / max(len(text1), len(text2))
    base      = 0.70 * vectorSimilarity + 0.30 * editSim
    composite = clamp(base + negationPenalty + timeAdjustment, 0, 1)
"""

from rapidfuzz.distance import Levenshtein

from .base import (
    ScoringInput,
    SimilarityBreakdown,
    SimilarityStrategy,
    clamp,
    negation_penalty,
    time_adjustment,
    vector_similarity,
)

VECTOR_WEIGHT = 0.70
EDIT_WEIGHT = 0.30


def edit_similarity(text1: str, text2: str) -> float:
    """Normalized Levenshtein similarity; two empty strings are identical."""
    longest = max(len(text1), len(text2))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(text1, text2) / longest


class VectorEditStrategy(SimilarityStrategy):
    @property
    def name(self) -> str:
        return "vector_edit"

    def score(
        self,
        a: ScoringInput,
        b: ScoringInput,
        raw_similarity: float | None = None,
    ) -> SimilarityBreakdown:
        vector, source = vector_similarity(a, b, raw_similarity)
        edit = edit_similarity(a.text, b.text)
        negation = negation_penalty(a, b)
        timing = time_adjustment(a, b)

        base = VECTOR_WEIGHT * vector + EDIT_WEIGHT * edit
        return SimilarityBreakdown(
            strategy=self.name,
            composite_score=clamp(base + negation + timing),
            vector_score=vector,
            vector_source=source,
            edit_score=edit,
            negation_penalty=negation,
            time_adjustment=timing,
        )
