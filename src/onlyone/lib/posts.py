"""Post creation and feed reads.

``create_post`` runs the whole engine for one submission:

    raw text → normalize → {action verb, signature, embedding}
             → candidates (kNN plus posts stored without a vector, or
               recent posts when embeddings are unavailable)
             → per-candidate match decision
             → insert post → record matches → bump same-scope counters

``get_recent_posts`` and ``get_post`` re-derive match counts live, because
posts created after a post can retroactively make it more common.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel

from ..config import Settings
from ..models import FeedFilter, Location, Post
from .days import extract_activities
from .embeddings import EmbeddingProvider, EmbeddingUnavailable
from .matching import MatchDecisionEngine, MatchVerdict, signatures_match
from .scope import day_start, is_candidate, validate_location
from .similarity import ScoringInput
from .text.actions import extract_action_verb
from .text.normalizer import normalize_text
from .text.signature import generate_signature
from .uniqueness import (
    UNIQUE_THRESHOLD,
    UniquenessPropagator,
    is_unique,
    recompute_live,
    uniqueness_score,
)

logger = logging.getLogger(__name__)


class CreatePostResult(BaseModel):
    post: Post
    match_count: int
    uniqueness_score: int
    matches: list[MatchVerdict]


class PostStats(BaseModel):
    today_total: int
    today_unique: int
    all_time_total: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _merge_candidates(
    post: Post,
    vector_hits: list[tuple[Post, float]],
    unembedded: list[Post],
) -> list[tuple[Post, float | None]]:
    """Merge kNN hits with unembedded posts, de-duplicated by id.

    Exact signature matches go first so that scoring limits never cut them.
    """
    merged: dict[str, tuple[Post, float | None]] = {}
    for candidate, similarity in vector_hits:
        merged.setdefault(candidate.id, (candidate, similarity))
    for candidate in unembedded:
        merged.setdefault(candidate.id, (candidate, None))
    return sorted(merged.values(), key=lambda pair: not signatures_match(post, pair[0]))


class PostService:
    """Entry points used by the API layer."""

    def __init__(
        self,
        store,
        embedder: EmbeddingProvider | None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.embedder = embedder
        self.settings = settings or Settings()
        self.engine = MatchDecisionEngine(self.settings.similarity_strategy)
        self.propagator = UniquenessPropagator(store)
        self.clock = clock

    # ------------------------------------------------------------------
    # Feature extraction
    # ------------------------------------------------------------------

    async def _embed(self, text: str) -> list[float] | None:
        if self.embedder is None or not text:
            return None
        try:
            return await asyncio.wait_for(
                self.embedder.embed(text), timeout=self.settings.embedding_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Embedding timed out after %.1fs; using lexical fallback",
                self.settings.embedding_timeout_seconds,
            )
        except EmbeddingUnavailable as exc:
            logger.warning("Embedding unavailable (%s); using lexical fallback", exc)
        return None

    async def build_post(
        self,
        content: str,
        input_type: str,
        scope: str,
        location: Location | None,
    ) -> Post:
        """Build the immutable part of a new post (not yet stored)."""
        validate_location(scope, location)
        normalized = normalize_text(content)
        signature = generate_signature(normalized.normalized)
        embedding = await self._embed(normalized.normalized)

        return Post(
            id=uuid.uuid4().hex,
            raw_content=content,
            normalized_content=normalized.normalized,
            embedding=embedding,
            content_signature=signature.core,
            full_signature=signature.full,
            action_verb=extract_action_verb(content),
            has_negation=normalized.has_negation,
            time_tags=normalized.time_tags,
            emoji_tags=normalized.emoji_tags,
            input_type=input_type,
            activities=extract_activities(content) if input_type == "day" else [],
            scope=scope,
            location=location or Location(),
            created_at=self.clock(),
        )

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    async def _retrieve(self, post: Post, since: datetime) -> list[tuple[Post, float | None]]:
        limit = self.settings.candidate_limit
        if post.embedding is not None:
            try:
                vector_hits = await self.store.vector_search(
                    post.embedding,
                    self.settings.vector_search_threshold,
                    post.scope,
                    post.location,
                    since,
                    limit,
                )
            except Exception:
                logger.exception("Vector search failed; falling back to recent candidates")
            else:
                # Posts stored while embeddings were unavailable are invisible
                # to kNN; they are scored lexically instead.
                unembedded = await self.store.query_candidates(
                    post.scope, post.location, since, limit, without_embedding=True
                )
                return _merge_candidates(post, vector_hits, unembedded)

        posts = await self.store.query_candidates(post.scope, post.location, since, limit)
        return [(candidate, None) for candidate in posts]

    async def find_matches(self, post: Post) -> list[tuple[Post, MatchVerdict]]:
        """Return the existing posts *post* is judged to match."""
        since = day_start(post.created_at)
        retrieved = await self._retrieve(post, since)
        candidates = [
            (candidate, raw)
            for candidate, raw in retrieved
            if candidate.id != post.id and is_candidate(candidate, post.scope, post.location, since)
        ][: self.settings.scoring_limit]

        if not candidates:
            logger.info("No candidates in %s scope for post %s", post.scope, post.id)
            return []

        new_input = ScoringInput.from_post(post)
        matched: list[tuple[Post, MatchVerdict]] = []
        for candidate, raw in candidates:
            verdict = self.engine.decide(
                post, candidate, post.scope, raw_similarity=raw, new_input=new_input
            )
            if verdict.matched:
                matched.append((candidate, verdict))
        logger.info(
            "Post %s matched %d of %d candidates (%s scope)",
            post.id,
            len(matched),
            len(candidates),
            post.scope,
        )
        return matched

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def create_post(
        self,
        content: str,
        input_type: str,
        scope: str,
        location: Location | None = None,
    ) -> CreatePostResult:
        post = await self.build_post(content, input_type, scope, location)
        matched = await self.find_matches(post)

        count = len(matched)
        post = post.model_copy(
            update={"match_count": count, "uniqueness_score": uniqueness_score(count)}
        )
        await self.store.insert_post(post)
        await self.propagator.propagate(post, matched)

        return CreatePostResult(
            post=post,
            match_count=post.match_count,
            uniqueness_score=post.uniqueness_score,
            matches=[verdict for _, verdict in matched],
        )

    async def get_recent_posts(
        self,
        filter: FeedFilter = "all",
        limit: int = 25,
        offset: int = 0,
    ) -> list[Post]:
        posts = await self.store.recent_posts(limit, offset)
        window_start = day_start(self.clock())
        posts = await asyncio.gather(
            *(recompute_live(post, self.store, window_start) for post in posts)
        )

        if filter == "unique":
            return [p for p in posts if is_unique(p.uniqueness_score)]
        if filter == "common":
            return [p for p in posts if not is_unique(p.uniqueness_score)]
        return list(posts)

    async def get_post(self, post_id: str) -> Post | None:
        """Fetch one post with a live match count, or ``None`` if it does not exist."""
        post = await self.store.get_post(post_id)
        if post is None:
            return None
        return await recompute_live(post, self.store, day_start(self.clock()))

    async def get_stats(self) -> PostStats:
        # Unique counts use stored scores; live recounting every post would
        # cost one query per post.
        since = day_start(self.clock())
        today, unique, total = await asyncio.gather(
            self.store.count_posts(since=since),
            self.store.count_posts(since=since, min_score=UNIQUE_THRESHOLD),
            self.store.count_posts(),
        )
        return PostStats(today_total=today, today_unique=unique, all_time_total=total)
