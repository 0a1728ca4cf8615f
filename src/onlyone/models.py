from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

Scope = Literal["city", "state", "country", "world"]
InputType = Literal["action", "day"]
FeedFilter = Literal["all", "unique", "common"]

SCOPES: tuple[str, ...] = ("city", "state", "country", "world")

MIN_CONTENT_LENGTH = 3
MAX_CONTENT_LENGTH = 500


class Location(BaseModel):
    """Where a post was made.  Only the field the scope names is required."""

    city: str | None = Field(None, description="City name")
    state: str | None = Field(None, description="State / region name")
    country: str | None = Field(None, description="Country name")


class Post(BaseModel):
    """One submitted action, as stored in the ``posts`` index."""

    id: str = Field(..., description="Opaque, system-assigned identifier")
    raw_content: str = Field(
        ..., min_length=MIN_CONTENT_LENGTH, max_length=MAX_CONTENT_LENGTH,
        description="Post text exactly as typed",
    )
    normalized_content: str = Field("", description="Normalizer output used for matching")
    embedding: list[float] | None = Field(
        None, description="384-d unit vector (None when embedding was unavailable)"
    )
    content_signature: str = Field("", description="Stemmed core-action signature")
    full_signature: str = Field("", description="Five-stem grouping signature")
    action_verb: str | None = Field(None, description="Stemmed primary action verb")
    has_negation: bool = False
    time_tags: list[str] = Field(default_factory=list)
    emoji_tags: list[str] = Field(default_factory=list)
    input_type: InputType = "action"
    activities: list[str] = Field(default_factory=list)
    scope: Scope
    location: Location = Field(default_factory=Location)
    match_count: int = Field(0, ge=0)
    uniqueness_score: int = Field(100, ge=0, le=100)
    created_at: datetime


class PostMatch(BaseModel):
    """Directed audit record: ``post_id`` was judged to match ``matched_post_id``."""

    post_id: str
    matched_post_id: str
    similarity_score: float = Field(..., ge=0.0, le=1.0)
    post_scope: Scope
    matched_post_scope: Scope
    created_at: datetime
