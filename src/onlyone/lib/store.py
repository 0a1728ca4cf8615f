"""Elasticsearch implementation of the post storage contract.

Two indices are used:

* ``posts`` – one document per :class:`~onlyone.models.Post`, with the
  embedding stored as a ``dense_vector`` (cosine) for kNN retrieval.
* ``post_matches`` – the audit trail of accepted matches.

Counter bumps run server-side as a painless script so concurrent creations
never lose increments to read-modify-write races.
"""

import logging
from datetime import datetime

from .elasticsearch import iter_hits, unwrap_es_response
from .scope import candidate_filters
from ..models import Location, Post, PostMatch

logger = logging.getLogger(__name__)

DEFAULT_POSTS_INDEX = "posts"
DEFAULT_MATCHES_INDEX = "post_matches"

INCREMENT_SCRIPT = (
    "int n = (ctx._source.match_count == null ? 0 : ctx._source.match_count) + 1; "
    "ctx._source.match_count = n; "
    "ctx._source.uniqueness_score = (int) Math.max(0, 100 - n * 10);"
)


def post_to_document(post: Post) -> dict:
    return post.model_dump(mode="json")


def document_to_post(src: dict) -> Post:
    return Post.model_validate(src)


def es_score_to_cosine(score: float) -> float:
    """Invert Elasticsearch's cosine scoring, ``_score = (1 + cos) / 2``."""
    return 2.0 * score - 1.0


class PostStore:
    """Async storage collaborator backed by an ``AsyncElasticsearch`` client."""

    def __init__(
        self,
        es,
        posts_index: str = DEFAULT_POSTS_INDEX,
        matches_index: str = DEFAULT_MATCHES_INDEX,
    ):
        self.es = es
        self.posts_index = posts_index
        self.matches_index = matches_index

    async def insert_post(self, post: Post) -> str:
        await self.es.index(
            index=self.posts_index,
            id=post.id,
            document=post_to_document(post),
            refresh="wait_for",
        )
        return post.id

    async def query_candidates(
        self,
        scope: str,
        location: Location | None,
        since: datetime,
        limit: int,
        without_embedding: bool = False,
    ) -> list[Post]:
        """Most recent eligible posts for *scope*/*location* since *since*.

        With *without_embedding*, only posts stored without a vector are
        returned; kNN search never sees those.
        """
        query: dict = {"filter": candidate_filters(scope, location, since)}
        if without_embedding:
            query["must_not"] = [{"exists": {"field": "embedding"}}]
        resp = await self.es.search(
            index=self.posts_index,
            query={"bool": query},
            size=limit,
            sort=[{"created_at": "desc"}],
        )
        return [document_to_post(src) for src, _ in iter_hits(resp)]

    async def vector_search(
        self,
        query_embedding: list[float],
        threshold: float,
        scope: str,
        location: Location | None,
        since: datetime,
        limit: int,
    ) -> list[tuple[Post, float]]:
        """kNN search over eligible posts, returning ``(post, cosine)`` pairs.

        Results are ordered by similarity and cut at *threshold*.
        """
        knn_query = {
            "bool": {
                "must": {
                    "knn": {
                        "field": "embedding",
                        "query_vector": query_embedding,
                        "k": limit,
                        "num_candidates": max(100, limit * 10),
                    }
                },
                "filter": candidate_filters(scope, location, since),
            }
        }

        resp = await self.es.search(index=self.posts_index, query=knn_query, size=limit)

        results: list[tuple[Post, float]] = []
        for src, score in iter_hits(resp):
            if score is None:
                continue
            similarity = es_score_to_cosine(score)
            if similarity < threshold:
                continue
            results.append((document_to_post(src), similarity))
        results.sort(key=lambda pair: pair[1], reverse=True)
        return results

    async def batch_increment_match_counts(self, post_ids: list[str]) -> int:
        """Atomically bump ``match_count`` (and rescore) for many posts.

        Returns the number of documents the cluster reports as updated.
        """
        ids = list(dict.fromkeys(post_ids))
        if not ids:
            return 0
        resp = await self.es.update_by_query(
            index=self.posts_index,
            query={"ids": {"values": ids}},
            script={"source": INCREMENT_SCRIPT, "lang": "painless"},
            conflicts="proceed",
            refresh=True,
        )
        data = unwrap_es_response(resp)
        updated = data.get("updated", 0)
        if updated != len(ids):
            logger.warning("Batch increment updated %d of %d posts", updated, len(ids))
        return updated

    async def increment_match_count(self, post_id: str) -> None:
        await self.es.update(
            index=self.posts_index,
            id=post_id,
            script={"source": INCREMENT_SCRIPT, "lang": "painless"},
            retry_on_conflict=3,
        )

    async def insert_matches(self, matches: list[PostMatch]) -> None:
        if not matches:
            return
        operations: list[dict] = []
        for match in matches:
            operations.append({"index": {"_index": self.matches_index}})
            operations.append(match.model_dump(mode="json"))

        resp = await self.es.bulk(operations=operations, refresh="wait_for")
        data = unwrap_es_response(resp)
        if data.get("errors"):
            raise RuntimeError(f"bulk insert of {len(matches)} matches reported errors")

    async def count_live_matches(self, post: Post) -> int:
        """Count matches that contribute to *post*'s ``match_count``.

        These are the matches *post* recorded when it was created, plus the
        matches later posts of the same scope recorded against it.
        """
        query = {
            "bool": {
                "should": [
                    {"term": {"post_id": post.id}},
                    {
                        "bool": {
                            "filter": [
                                {"term": {"matched_post_id": post.id}},
                                {"term": {"post_scope": post.scope}},
                            ]
                        }
                    },
                ],
                "minimum_should_match": 1,
            }
        }
        resp = await self.es.count(index=self.matches_index, query=query)
        return int(unwrap_es_response(resp).get("count", 0))

    async def recent_posts(self, limit: int, offset: int = 0) -> list[Post]:
        resp = await self.es.search(
            index=self.posts_index,
            query={"match_all": {}},
            size=limit,
            from_=offset,
            sort=[{"created_at": "desc"}],
            _source={"excludes": ["embedding"]},
        )
        return [document_to_post(src) for src, _ in iter_hits(resp)]

    async def get_post(self, post_id: str) -> Post | None:
        resp = await self.es.search(
            index=self.posts_index,
            query={"ids": {"values": [post_id]}},
            size=1,
        )
        for src, _ in iter_hits(resp):
            return document_to_post(src)
        return None

    async def count_posts(
        self,
        since: datetime | None = None,
        min_score: int | None = None,
    ) -> int:
        """Count posts created since *since* with a stored score of at least *min_score*."""
        filters: list[dict] = []
        if since is not None:
            filters.append({"range": {"created_at": {"gte": since.isoformat()}}})
        if min_score is not None:
            filters.append({"range": {"uniqueness_score": {"gte": min_score}}})
        query = {"bool": {"filter": filters}} if filters else {"match_all": {}}
        resp = await self.es.count(index=self.posts_index, query=query)
        return int(unwrap_es_response(resp).get("count", 0))
