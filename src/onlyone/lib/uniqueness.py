"""Uniqueness scoring and match-count propagation.

``uniqueness_score = clamp(100 - 10 * match_count, 0, 100)``.  When a new
post matches existing ones, the matches are recorded and the counters of
same-scope matched posts are bumped in one batched server-side update.
Propagation problems are logged and never fail the new post's creation.
"""

import logging
from datetime import datetime

from .matching import MatchVerdict
from .scope import counter_update_targets
from ..models import Post, PostMatch

logger = logging.getLogger(__name__)

UNIQUE_THRESHOLD = 70
SCORE_STEP = 10
MAX_SCORE = 100


def uniqueness_score(match_count: int) -> int:
    """Rarity score for *match_count* matches (100 = nobody else did it)."""
    return max(0, min(MAX_SCORE, MAX_SCORE - match_count * SCORE_STEP))


def is_unique(score: int) -> bool:
    return score >= UNIQUE_THRESHOLD


def build_matches(
    new_post: Post,
    matched: list[tuple[Post, MatchVerdict]],
) -> list[PostMatch]:
    return [
        PostMatch(
            post_id=new_post.id,
            matched_post_id=candidate.id,
            similarity_score=max(0.0, min(1.0, verdict.score)),
            post_scope=new_post.scope,
            matched_post_scope=candidate.scope,
            created_at=new_post.created_at,
        )
        for candidate, verdict in matched
    ]


class UniquenessPropagator:
    """Records matches and bumps counters after a post is created."""

    def __init__(self, store):
        self.store = store

    async def propagate(
        self,
        new_post: Post,
        matched: list[tuple[Post, MatchVerdict]],
    ) -> list[str]:
        """Record *matched* and increment same-scope counters.

        Returns the ids whose counters were (or were attempted to be)
        incremented.
        """
        if not matched:
            return []

        matches = build_matches(new_post, matched)
        try:
            await self.store.insert_matches(matches)
        except Exception:
            logger.exception("Failed to record %d matches for post %s", len(matches), new_post.id)

        targets = counter_update_targets(new_post.scope, [post for post, _ in matched])
        protected = len(matched) - len(targets)
        if not targets:
            logger.info(
                "All %d matched posts protected by scope isolation (new post scope %s)",
                len(matched),
                new_post.scope,
            )
            return []

        try:
            await self.store.batch_increment_match_counts(targets)
        except Exception:
            logger.exception(
                "Batch increment failed for %d posts; retrying individually", len(targets)
            )
            await self._increment_sequentially(targets)
        else:
            logger.info(
                "Updated %d posts (%d protected by scope isolation)", len(targets), protected
            )
        return targets

    async def _increment_sequentially(self, post_ids: list[str]) -> None:
        for post_id in post_ids:
            try:
                await self.store.increment_match_count(post_id)
            except Exception:
                logger.exception("Failed to increment match count for post %s", post_id)


async def recompute_live(post: Post, store, window_start: datetime) -> Post:
    """Return *post* with ``match_count``/``uniqueness_score`` re-derived.

    Posts older than the current window can no longer gain matches, so
    their stored values are authoritative.
    """
    if post.created_at < window_start:
        return post
    count = await store.count_live_matches(post)
    return post.model_copy(
        update={"match_count": count, "uniqueness_score": uniqueness_score(count)}
    )
