"""Per-candidate match decisions.

Each candidate moves through ``CANDIDATE → VERB_GATE → {REJECTED | SCORED}
→ {MATCHED | REJECTED}``:

1. Equal content signatures (and equal negation) short-circuit to MATCHED
   with score 1.0.
2. Different action verbs are REJECTED outright.
3. A negation mismatch is REJECTED whatever the score.
4. A composite score at or above the scope threshold is MATCHED.
5. Otherwise a raw embedding similarity of at least 0.90 is still MATCHED.
6. Everything else is REJECTED.
"""

import logging
from enum import Enum

from pydantic import BaseModel

from .similarity import DEFAULT_STRATEGY, ScoringInput, SimilarityBreakdown, get_strategy
from .text.actions import are_same_stemmed_action
from ..models import Post

logger = logging.getLogger(__name__)

# Thresholds rise with scope breadth: larger pools carry more false positives.
SCOPE_THRESHOLDS: dict[str, float] = {
    "city": 0.58,
    "state": 0.62,
    "country": 0.66,
    "world": 0.68,
}

STRONG_SEMANTIC_THRESHOLD = 0.90


class MatchState(str, Enum):
    CANDIDATE = "candidate"
    VERB_GATE = "verb_gate"
    SCORED = "scored"
    MATCHED = "matched"
    REJECTED = "rejected"


class MatchVerdict(BaseModel):
    candidate_id: str
    state: MatchState
    score: float
    reason: str
    breakdown: SimilarityBreakdown | None = None

    @property
    def matched(self) -> bool:
        return self.state is MatchState.MATCHED


def scope_threshold(scope: str) -> float:
    return SCOPE_THRESHOLDS[scope]


def signatures_match(new_post: Post, candidate: Post) -> bool:
    """Fast-path test: identical, non-empty signatures with the same polarity."""
    return (
        bool(new_post.content_signature)
        and new_post.content_signature == candidate.content_signature
        and new_post.has_negation == candidate.has_negation
    )


class MatchDecisionEngine:
    """Applies the gates and scope thresholds to one candidate at a time."""

    def __init__(self, strategy_name: str = DEFAULT_STRATEGY):
        strategy = get_strategy(strategy_name)
        if strategy is None:
            raise ValueError(f"Unknown similarity strategy: {strategy_name}")
        self.strategy = strategy

    def decide(
        self,
        new_post: Post,
        candidate: Post,
        scope: str,
        raw_similarity: float | None = None,
        new_input: ScoringInput | None = None,
    ) -> MatchVerdict:
        state = MatchState.CANDIDATE

        if signatures_match(new_post, candidate):
            return MatchVerdict(
                candidate_id=candidate.id,
                state=MatchState.MATCHED,
                score=1.0,
                reason=f"Exact signature match ({new_post.content_signature})",
            )

        state = MatchState.VERB_GATE
        if not are_same_stemmed_action(new_post.action_verb, candidate.action_verb):
            if not new_post.action_verb or not candidate.action_verb:
                reason = "No action verb found"
            else:
                reason = (
                    f"Different action verbs ({new_post.action_verb} != {candidate.action_verb})"
                )
            return MatchVerdict(
                candidate_id=candidate.id, state=MatchState.REJECTED, score=0.0, reason=reason
            )

        breakdown = self.strategy.score(
            new_input or ScoringInput.from_post(new_post),
            ScoringInput.from_post(candidate),
            raw_similarity=raw_similarity,
        )
        state = MatchState.SCORED
        score = breakdown.composite_score

        if breakdown.negation_mismatch:
            return MatchVerdict(
                candidate_id=candidate.id,
                state=MatchState.REJECTED,
                score=score,
                reason="Negation mismatch (did vs did not)",
                breakdown=breakdown,
            )

        threshold = scope_threshold(scope)
        if score >= threshold:
            return MatchVerdict(
                candidate_id=candidate.id,
                state=MatchState.MATCHED,
                score=score,
                reason=f"Composite {score * 100:.0f}% >= {threshold * 100:.0f}% ({scope})",
                breakdown=breakdown,
            )

        semantic = breakdown.embedding_similarity
        if semantic is not None and semantic >= STRONG_SEMANTIC_THRESHOLD:
            return MatchVerdict(
                candidate_id=candidate.id,
                state=MatchState.MATCHED,
                score=score,
                reason=f"Strong semantic match ({semantic * 100:.0f}%)",
                breakdown=breakdown,
            )

        logger.debug(
            "Rejected candidate %s in state %s: %s", candidate.id, state.value, breakdown.describe()
        )
        return MatchVerdict(
            candidate_id=candidate.id,
            state=MatchState.REJECTED,
            score=score,
            reason=f"Score {score * 100:.0f}% < threshold {threshold * 100:.0f}%",
            breakdown=breakdown,
        )
