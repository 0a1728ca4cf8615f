"""Scope hierarchy rules.

Scopes nest city < state < country < world.  Two different rules apply:

* **Candidate retrieval** is hierarchical – a broad post is compared with
  every narrower post inside its region (a country post sees the city and
  state posts of that country).
* **Counter updates** are exact – a new post only bumps the match counts of
  posts whose scope equals its own, so broad activity never deflates the
  rarity of a narrow post.
"""

from datetime import datetime, timezone

from ..models import Location, Post

SCOPE_LEVELS: dict[str, int] = {"city": 0, "state": 1, "country": 2, "world": 3}

# Scopes a post of the given scope may be compared with.
ELIGIBLE_SCOPES: dict[str, tuple[str, ...]] = {
    "city": ("city",),
    "state": ("city", "state"),
    "country": ("city", "state", "country"),
    "world": ("city", "state", "country", "world"),
}

# Location field each scope is keyed on (world has none).
LOCATION_FIELDS: dict[str, str | None] = {
    "city": "city",
    "state": "state",
    "country": "country",
    "world": None,
}


def validate_location(scope: str, location: Location | None) -> None:
    """Raise ``ValueError`` unless *location* carries the field *scope* needs."""
    if scope not in SCOPE_LEVELS:
        raise ValueError(f"Unknown scope: {scope}")
    field = LOCATION_FIELDS[scope]
    if field is None:
        return
    if location is None or not getattr(location, field):
        raise ValueError(f"location.{field} is required for {scope} scope")


def day_start(now: datetime | None = None) -> datetime:
    """Midnight UTC of the current day; the start of the matching window."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def candidate_filters(scope: str, location: Location | None, since: datetime) -> list[dict]:
    """Elasticsearch filter clauses implementing the retrieval rule."""
    validate_location(scope, location)
    filters: list[dict] = [{"range": {"created_at": {"gte": since.isoformat()}}}]
    field = LOCATION_FIELDS[scope]
    if field is not None:
        filters.append({"terms": {"scope": list(ELIGIBLE_SCOPES[scope])}})
        filters.append({"term": {f"location.{field}": getattr(location, field)}})
    return filters


def is_candidate(post: Post, scope: str, location: Location | None, since: datetime) -> bool:
    """In-process equivalent of :func:`candidate_filters`."""
    if post.created_at < since:
        return False
    if post.scope not in ELIGIBLE_SCOPES[scope]:
        return False
    field = LOCATION_FIELDS[scope]
    if field is None:
        return True
    return getattr(post.location, field) == getattr(location, field)


def counter_update_targets(scope: str, matched: list[Post]) -> list[str]:
    """Ids of matched posts whose counters the new post may increment.

    Only posts with exactly the same scope qualify; ids are de-duplicated
    so each post is bumped at most once per creation.
    """
    ids: list[str] = []
    for post in matched:
        if post.scope == scope and post.id not in ids:
            ids.append(post.id)
    return ids
