"""Tests for uniqueness scoring and counter propagation."""

from datetime import datetime, timedelta, timezone

import pytest

from ..models import Post
from .matching import MatchState, MatchVerdict
from .uniqueness import (
    UniquenessPropagator,
    build_matches,
    is_unique,
    recompute_live,
    uniqueness_score,
)

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def make_post(post_id, scope="world", created_at=NOW, match_count=0):
    return Post(
        id=post_id,
        raw_content="played cricket",
        scope=scope,
        created_at=created_at,
        match_count=match_count,
        uniqueness_score=uniqueness_score(match_count),
    )


def verdict(post, score=0.8):
    return MatchVerdict(candidate_id=post.id, state=MatchState.MATCHED, score=score, reason="test")


class FakeStore:
    def __init__(self, fail_batch=False, fail_matches=False, fail_ids=(), live_count=0):
        self.fail_batch = fail_batch
        self.fail_matches = fail_matches
        self.fail_ids = set(fail_ids)
        self.live_count = live_count
        self.matches = []
        self.batches: list[list[str]] = []
        self.single: list[str] = []
        self.counted: list[str] = []

    async def insert_matches(self, matches):
        if self.fail_matches:
            raise RuntimeError("bulk failed")
        self.matches.extend(matches)

    async def batch_increment_match_counts(self, ids):
        if self.fail_batch:
            raise RuntimeError("update_by_query failed")
        self.batches.append(list(ids))
        return len(ids)

    async def increment_match_count(self, post_id):
        if post_id in self.fail_ids:
            raise RuntimeError("update failed")
        self.single.append(post_id)

    async def count_live_matches(self, post):
        self.counted.append(post.id)
        return self.live_count


class TestScore:
    @pytest.mark.parametrize("count,score", [(0, 100), (1, 90), (3, 70), (10, 0), (25, 0)])
    def test_uniqueness_score(self, count, score):
        assert uniqueness_score(count) == score

    def test_monotonic(self):
        scores = [uniqueness_score(n) for n in range(15)]
        assert scores == sorted(scores, reverse=True)

    def test_unique_cutoff(self):
        assert is_unique(70)
        assert not is_unique(69)


def test_build_matches_denormalizes_scopes():
    new = make_post("new", scope="world")
    old = make_post("old", scope="city")
    (match,) = build_matches(new, [(old, verdict(old, score=1.2))])
    assert match.post_id == "new"
    assert match.matched_post_id == "old"
    assert match.post_scope == "world"
    assert match.matched_post_scope == "city"
    assert match.similarity_score == 1.0


class TestPropagator:
    @pytest.mark.asyncio
    async def test_no_matches_is_noop(self):
        store = FakeStore()
        assert await UniquenessPropagator(store).propagate(make_post("new"), []) == []
        assert store.matches == []
        assert store.batches == []

    @pytest.mark.asyncio
    async def test_world_post_does_not_touch_city_counters(self):
        store = FakeStore()
        city = make_post("city-1", scope="city")
        world = make_post("world-1", scope="world")
        new = make_post("new", scope="world")

        targets = await UniquenessPropagator(store).propagate(
            new, [(city, verdict(city)), (world, verdict(world))]
        )
        assert targets == ["world-1"]
        assert store.batches == [["world-1"]]
        assert len(store.matches) == 2

    @pytest.mark.asyncio
    async def test_all_protected(self):
        store = FakeStore()
        city = make_post("city-1", scope="city")
        targets = await UniquenessPropagator(store).propagate(
            make_post("new", scope="state"), [(city, verdict(city))]
        )
        assert targets == []
        assert store.batches == []

    @pytest.mark.asyncio
    async def test_batch_failure_falls_back_to_single_updates(self):
        store = FakeStore(fail_batch=True, fail_ids={"b"})
        posts = [make_post(i) for i in ("a", "b", "c")]
        targets = await UniquenessPropagator(store).propagate(
            make_post("new"), [(p, verdict(p)) for p in posts]
        )
        assert targets == ["a", "b", "c"]
        assert store.single == ["a", "c"]

    @pytest.mark.asyncio
    async def test_match_insert_failure_still_increments(self):
        store = FakeStore(fail_matches=True)
        old = make_post("old")
        await UniquenessPropagator(store).propagate(make_post("new"), [(old, verdict(old))])
        assert store.batches == [["old"]]


class TestRecomputeLive:
    @pytest.mark.asyncio
    async def test_today_post_is_recounted(self):
        store = FakeStore(live_count=4)
        post = await recompute_live(make_post("p1", match_count=1), store, NOW - timedelta(hours=12))
        assert post.match_count == 4
        assert post.uniqueness_score == 60
        assert store.counted == ["p1"]

    @pytest.mark.asyncio
    async def test_older_post_keeps_stored_value(self):
        store = FakeStore(live_count=4)
        old = make_post("p1", created_at=NOW - timedelta(days=2), match_count=1)
        post = await recompute_live(old, store, NOW - timedelta(hours=12))
        assert post.match_count == 1
        assert store.counted == []
