"""Posts router.

POST /posts
    Submit an action (or a day summary) and get back how unique it is.

GET /posts
    Recent posts with live match counts, optionally filtered to unique
    (score >= 70) or common posts.

GET /posts/{post_id}
    One post with its live match count.

POST /actions/compare
    Debug view of the action-verb gate for two texts.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field, field_validator, model_validator

from ..config import get_settings
from ..lib.days import validate_day_summary
from ..lib.posts import PostService
from ..lib.scope import validate_location
from ..lib.store import PostStore
from ..lib.text.actions import ActionComparison, compare_actions
from ..lib.uniqueness import is_unique
from ..models import (
    MAX_CONTENT_LENGTH,
    MIN_CONTENT_LENGTH,
    FeedFilter,
    InputType,
    Location,
    Post,
    Scope,
)
from ..security import verify_api_key

router = APIRouter(tags=["posts"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class CreatePostRequest(BaseModel):
    content: str = Field(
        ..., min_length=MIN_CONTENT_LENGTH, max_length=MAX_CONTENT_LENGTH,
        description="What you did",
    )
    input_type: InputType = Field("action", description="A single action or a whole day")
    scope: Scope = Field("world", description="How widely to compare the post")
    location: Location | None = Field(None, description="Required for non-world scopes")

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        value = value.strip()
        if len(value) < MIN_CONTENT_LENGTH:
            raise ValueError(f"content must be at least {MIN_CONTENT_LENGTH} characters")
        return value

    @model_validator(mode="after")
    def check_scope_and_day(self):
        validate_location(self.scope, self.location)
        if self.input_type == "day":
            validation = validate_day_summary(self.content)
            if not validation.is_valid:
                raise ValueError(validation.error)
        return self


class PostView(BaseModel):
    """A post as returned to clients (no embedding)."""

    id: str
    raw_content: str
    normalized_content: str
    content_signature: str
    action_verb: str | None
    has_negation: bool
    time_tags: list[str]
    emoji_tags: list[str]
    input_type: InputType
    activities: list[str]
    scope: Scope
    location: Location
    match_count: int
    uniqueness_score: int
    is_unique: bool
    created_at: datetime

    @classmethod
    def from_post(cls, post: Post) -> "PostView":
        return cls.model_validate(
            {**post.model_dump(exclude={"embedding"}), "is_unique": is_unique(post.uniqueness_score)}
        )


class MatchView(BaseModel):
    post_id: str
    score: float
    reason: str


class CreatePostResponse(BaseModel):
    post: PostView
    match_count: int
    uniqueness_score: int
    matches: list[MatchView]


class PostListResponse(BaseModel):
    posts: list[PostView]


class CompareActionsRequest(BaseModel):
    text1: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    text2: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def get_post_service(request: Request) -> PostService:
    settings = get_settings()
    store = PostStore(request.app.state.es, settings.posts_index, settings.matches_index)
    embedder = getattr(request.app.state, "embedder", None)
    return PostService(store, embedder, settings)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/posts", response_model=CreatePostResponse, status_code=201)
async def create_post(
    request: Request,
    payload: CreatePostRequest,
) -> CreatePostResponse:
    """Create a post, match it against today's posts and score its uniqueness."""
    service = get_post_service(request)
    try:
        result = await service.create_post(
            payload.content, payload.input_type, payload.scope, payload.location
        )
    except Exception as exc:
        logger.exception("Failed to create post")
        raise HTTPException(status_code=502, detail="Failed to store post") from exc

    return CreatePostResponse(
        post=PostView.from_post(result.post),
        match_count=result.match_count,
        uniqueness_score=result.uniqueness_score,
        matches=[
            MatchView(post_id=m.candidate_id, score=m.score, reason=m.reason)
            for m in result.matches
        ],
    )


@router.get("/posts", response_model=PostListResponse)
async def list_posts(
    request: Request,
    filter: FeedFilter = Query("all", description="all, unique or common"),
    limit: int = Query(25, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> PostListResponse:
    """Return recent posts, newest first, with live uniqueness scores."""
    service = get_post_service(request)
    try:
        posts = await service.get_recent_posts(filter, limit, offset)
    except Exception as exc:
        logger.exception("Failed to load posts")
        raise HTTPException(status_code=502, detail="Failed to load posts") from exc
    return PostListResponse(posts=[PostView.from_post(p) for p in posts])


@router.get("/posts/{post_id}", response_model=PostView)
async def get_post(request: Request, post_id: str) -> PostView:
    """Return one post with its live uniqueness score."""
    service = get_post_service(request)
    try:
        post = await service.get_post(post_id)
    except Exception as exc:
        logger.exception("Failed to load post %s", post_id)
        raise HTTPException(status_code=502, detail="Failed to load post") from exc
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return PostView.from_post(post)


@router.post("/actions/compare", response_model=ActionComparison)
async def compare_action_verbs(payload: CompareActionsRequest) -> ActionComparison:
    """Show how the verb gate sees two texts: extracted verbs, stems and verdict."""
    return compare_actions(payload.text1, payload.text2)
