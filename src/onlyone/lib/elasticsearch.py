"""Shared Elasticsearch utilities.

Helpers for working with Elasticsearch responses and the index mappings
used by the post store.
"""

import logging

from elastic_transport import ObjectApiResponse

from .embeddings import EMBEDDING_DIM

logger = logging.getLogger(__name__)

POSTS_MAPPING = {
    "properties": {
        "id": {"type": "keyword"},
        "raw_content": {"type": "text"},
        "normalized_content": {"type": "text"},
        "embedding": {
            "type": "dense_vector",
            "dims": EMBEDDING_DIM,
            "index": True,
            "similarity": "cosine",
        },
        "content_signature": {"type": "keyword"},
        "full_signature": {"type": "keyword"},
        "action_verb": {"type": "keyword"},
        "has_negation": {"type": "boolean"},
        "time_tags": {"type": "keyword"},
        "emoji_tags": {"type": "keyword"},
        "input_type": {"type": "keyword"},
        "activities": {"type": "text"},
        "scope": {"type": "keyword"},
        "location": {
            "properties": {
                "city": {"type": "keyword"},
                "state": {"type": "keyword"},
                "country": {"type": "keyword"},
            }
        },
        "match_count": {"type": "integer"},
        "uniqueness_score": {"type": "integer"},
        "created_at": {"type": "date"},
    }
}

MATCHES_MAPPING = {
    "properties": {
        "post_id": {"type": "keyword"},
        "matched_post_id": {"type": "keyword"},
        "similarity_score": {"type": "float"},
        "post_scope": {"type": "keyword"},
        "matched_post_scope": {"type": "keyword"},
        "created_at": {"type": "date"},
    }
}


def unwrap_es_response(resp) -> dict:
    """Unwrap an Elasticsearch response (ObjectApiResponse or plain dict)."""
    if isinstance(resp, ObjectApiResponse):
        return resp.body
    if isinstance(resp, dict):
        return resp
    logger.error("Unexpected Elasticsearch response type: %s", type(resp))
    raise TypeError(f"Unexpected Elasticsearch response type: {type(resp)}")


def iter_hits(resp):
    """Yield ``(source, score)`` for every hit in a search response."""
    data = unwrap_es_response(resp)
    for hit in data.get("hits", {}).get("hits", []):
        yield hit.get("_source") or {}, hit.get("_score")


async def ensure_indices(es, posts_index: str, matches_index: str) -> None:
    """Create the posts and matches indices if they do not exist yet."""
    for index, mapping in ((posts_index, POSTS_MAPPING), (matches_index, MATCHES_MAPPING)):
        exists = await es.indices.exists(index=index)
        if not exists:
            logger.info("Creating Elasticsearch index %s", index)
            await es.indices.create(index=index, mappings=mapping)
