"""Granular n-gram composite (opt-in variant).

``S = 0.45*E + 0.35*J + 0.20*T + N + R`` where ``J`` is character-trigram
Jaccard and ``T`` is token overlap.  Selected with
``SIMILARITY_STRATEGY=ngram``.
"""

from ..text.normalizer import ngram_jaccard, token_overlap
from .base import (
    ScoringInput,
    SimilarityBreakdown,
    SimilarityStrategy,
    clamp,
    negation_penalty,
    time_adjustment,
    vector_similarity,
)

EMBEDDING_WEIGHT = 0.45
JACCARD_WEIGHT = 0.35
TOKEN_WEIGHT = 0.20


class NgramStrategy(SimilarityStrategy):
    @property
    def name(self) -> str:
        return "ngram"

    def score(
        self,
        a: ScoringInput,
        b: ScoringInput,
        raw_similarity: float | None = None,
    ) -> SimilarityBreakdown:
        vector, source = vector_similarity(a, b, raw_similarity)
        jaccard = ngram_jaccard(a.text, b.text, 3)
        tokens = token_overlap(a.text, b.text)
        negation = negation_penalty(a, b)
        timing = time_adjustment(a, b)

        base = EMBEDDING_WEIGHT * vector + JACCARD_WEIGHT * jaccard + TOKEN_WEIGHT * tokens
        return SimilarityBreakdown(
            strategy=self.name,
            composite_score=clamp(base + negation + timing),
            vector_score=vector,
            vector_source=source,
            jaccard_score=jaccard,
            token_score=tokens,
            negation_penalty=negation,
            time_adjustment=timing,
        )
