"""Runtime configuration read from the environment.

Values are read on each call to :func:`get_settings` so tests can patch
``os.environ``.  ``.env`` files are loaded when the package is imported.
"""

import os

from pydantic import BaseModel, Field

from .lib.embeddings import DEFAULT_MODEL


class Settings(BaseModel):
    elasticsearch_url: str = "http://localhost:9200"
    elasticsearch_api_key: str | None = None
    posts_index: str = "posts"
    matches_index: str = "post_matches"
    embedding_model: str = DEFAULT_MODEL
    embedding_timeout_seconds: float = Field(5.0, gt=0)
    warmup_embeddings: bool = True
    similarity_strategy: str = "vector_edit"
    # Rows fetched per retrieval and rows actually scored per submission.
    candidate_limit: int = Field(20, ge=1)
    scoring_limit: int = Field(15, ge=1)
    vector_search_threshold: float = Field(0.5, ge=-1.0, le=1.0)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_settings() -> Settings:
    env = os.environ
    values: dict = {}
    simple = {
        "ELASTICSEARCH_URL": "elasticsearch_url",
        "ELASTICSEARCH_API_KEY": "elasticsearch_api_key",
        "POSTS_INDEX": "posts_index",
        "MATCHES_INDEX": "matches_index",
        "EMBEDDING_MODEL": "embedding_model",
        "SIMILARITY_STRATEGY": "similarity_strategy",
        "EMBEDDING_TIMEOUT_SECONDS": "embedding_timeout_seconds",
        "CANDIDATE_LIMIT": "candidate_limit",
        "SCORING_LIMIT": "scoring_limit",
        "VECTOR_SEARCH_THRESHOLD": "vector_search_threshold",
    }
    for var, field in simple.items():
        if env.get(var):
            values[field] = env[var]
    if env.get("WARMUP_EMBEDDINGS"):
        values["warmup_embeddings"] = _env_bool(env["WARMUP_EMBEDDINGS"])
    return Settings(**values)
