"""Day summaries: activity extraction and day-to-day overlap.

A day post ("made coffee, walked the dog and read a book") is split into
individual activities. Two days are compared by pairing each activity of
the first day with its best unused counterpart in the second, using the
same 70/30 vector + edit-distance blend as single actions.
"""

import logging
import re

from pydantic import BaseModel

from .embeddings import cosine_similarity
from .similarity.vector_edit import EDIT_WEIGHT, VECTOR_WEIGHT, edit_similarity
from .text.actions import extract_raw_action_verb

logger = logging.getLogger(__name__)

ACTIVITY_MATCH_THRESHOLD = 0.75
MIN_ACTIVITIES = 2
MAX_ACTIVITIES = 15
MIN_ACTIVITY_WORDS = 2
MAX_ACTIVITY_WORDS = 15
# Share of distinct activities below which a summary counts as repetitive.
MIN_DISTINCT_RATIO = 0.7
# Activities seen in fewer than this share of similar days are "unique".
RARE_ACTIVITY_RATIO = 0.3

DAY_SCOPE_THRESHOLDS: dict[str, float] = {
    "city": 0.75,
    "state": 0.70,
    "country": 0.65,
    "world": 0.60,
}

_SPLIT_RE = re.compile(
    r",\s*and\s+|,\s*then\s+|,\s+|\s+and\s+then\s+|\s+then\s+|\s+and\s+",
    re.IGNORECASE,
)
_LEADING_MARKER_RE = re.compile(
    r"^(?:this morning|this afternoon|this evening|tonight|today|later|after that|"
    r"before that|first|next|finally|lastly|also)\s+",
    re.IGNORECASE,
)
_LEADING_I_RE = re.compile(r"^i\s+", re.IGNORECASE)
_SUBORDINATE_RE = re.compile(r"\s+(?:before|after|while|when|as|since)\s+.+$", re.IGNORECASE)
_BY_RE = re.compile(r"^.+\s+by\s+", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class ActivityMatch(BaseModel):
    activity: str
    matched_activity: str
    similarity: float


class DayOverlap(BaseModel):
    overlap_percentage: float
    matched_count: int
    details: list[ActivityMatch]


class DayCandidate(BaseModel):
    id: str
    activities: list[str]
    embeddings: list[list[float]]


class DayMatchResult(BaseModel):
    post_id: str
    similarity: float
    matched_activities: int
    total_activities: int
    match_details: list[ActivityMatch]


class DaySummaryValidation(BaseModel):
    is_valid: bool
    error: str | None = None
    activity_count: int


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def _clean_clause(clause: str) -> str:
    cleaned = _LEADING_MARKER_RE.sub("", clause)
    cleaned = _LEADING_I_RE.sub("", cleaned)
    cleaned = _SUBORDINATE_RE.sub("", cleaned)
    cleaned = _BY_RE.sub("", cleaned)
    return cleaned.strip(" .!?;").strip()


def extract_activities(day_text: str) -> list[str]:
    """Split a day summary into distinct activity clauses.

    Clauses without an action verb, or shorter than two / longer than
    fifteen words, are dropped. Duplicates are removed case-insensitively,
    keeping the first occurrence.
    """
    if not day_text or not day_text.strip():
        return []

    activities: list[str] = []
    seen: set[str] = set()
    for clause in _SPLIT_RE.split(day_text.strip()):
        activity = _clean_clause(clause)
        if len(activity) < 3:
            continue
        words = len(activity.split())
        if not MIN_ACTIVITY_WORDS <= words <= MAX_ACTIVITY_WORDS:
            continue
        if extract_raw_action_verb(activity) is None:
            continue
        key = activity.lower()
        if key in seen:
            continue
        seen.add(key)
        activities.append(activity)
    return activities


def validate_day_summary(text: str) -> DaySummaryValidation:
    activities = extract_activities(text)
    count = len(activities)

    if count < MIN_ACTIVITIES:
        error = (
            "Please describe at least 2 activities for a day summary. "
            'For a single action, use "action" instead.'
        )
    elif count > MAX_ACTIVITIES:
        error = "Please keep your day summary under 15 activities."
    elif len({a.lower() for a in activities}) < count * MIN_DISTINCT_RATIO:
        error = "Please list different activities, not the same one multiple times."
    else:
        error = None

    return DaySummaryValidation(is_valid=error is None, error=error, activity_count=count)


# ---------------------------------------------------------------------------
# Overlap
# ---------------------------------------------------------------------------

def day_scope_threshold(scope: str) -> float:
    """Minimum overlap for two days to count as similar; looser for wider scopes."""
    return DAY_SCOPE_THRESHOLDS.get(scope, DAY_SCOPE_THRESHOLDS["world"])


def activity_similarity(
    activity_a: str,
    embedding_a: list[float],
    activity_b: str,
    embedding_b: list[float],
) -> float:
    vector = cosine_similarity(embedding_a, embedding_b)
    edit = edit_similarity(activity_a.lower(), activity_b.lower())
    return VECTOR_WEIGHT * vector + EDIT_WEIGHT * edit


def calculate_day_overlap(
    activities_a: list[str],
    embeddings_a: list[list[float]],
    activities_b: list[str],
    embeddings_b: list[list[float]],
    scope: str = "world",
) -> DayOverlap:
    """Greedy activity pairing between two days.

    Each activity of day A takes the best still-unused activity of day B;
    the pair counts when its similarity reaches 0.75. The overlap is the
    number of pairs divided by the smaller day's activity count. *scope*
    does not change the per-activity threshold; it is only logged.
    """
    if len(activities_a) != len(embeddings_a) or len(activities_b) != len(embeddings_b):
        raise ValueError("each activity needs exactly one embedding")
    if not activities_a or not activities_b:
        return DayOverlap(overlap_percentage=0.0, matched_count=0, details=[])

    used: set[int] = set()
    details: list[ActivityMatch] = []
    for activity, embedding in zip(activities_a, embeddings_a):
        best_index, best_score = -1, 0.0
        for j, (other, other_embedding) in enumerate(zip(activities_b, embeddings_b)):
            if j in used:
                continue
            score = activity_similarity(activity, embedding, other, other_embedding)
            if score > best_score:
                best_index, best_score = j, score

        if best_index != -1 and best_score >= ACTIVITY_MATCH_THRESHOLD:
            used.add(best_index)
            details.append(
                ActivityMatch(
                    activity=activity,
                    matched_activity=activities_b[best_index],
                    similarity=best_score,
                )
            )

    overlap = len(details) / min(len(activities_a), len(activities_b))
    logger.debug(
        "Day overlap %.2f (%d pairs, %s scope)", overlap, len(details), scope
    )
    return DayOverlap(overlap_percentage=overlap, matched_count=len(details), details=details)


def find_similar_days(
    activities: list[str],
    embeddings: list[list[float]],
    candidates: list[DayCandidate],
    scope: str = "world",
    threshold: float | None = None,
) -> list[DayMatchResult]:
    """Candidate days whose overlap reaches *threshold*, most similar first.

    The threshold defaults to :func:`day_scope_threshold` for *scope*.
    """
    if threshold is None:
        threshold = day_scope_threshold(scope)

    results: list[DayMatchResult] = []
    for day in candidates:
        if not day.activities or len(day.activities) != len(day.embeddings):
            continue
        overlap = calculate_day_overlap(
            activities, embeddings, day.activities, day.embeddings, scope
        )
        if overlap.overlap_percentage >= threshold:
            results.append(
                DayMatchResult(
                    post_id=day.id,
                    similarity=overlap.overlap_percentage,
                    matched_activities=overlap.matched_count,
                    total_activities=len(day.activities),
                    match_details=overlap.details,
                )
            )
    results.sort(key=lambda r: r.similarity, reverse=True)
    return results


def categorize_activities_by_rarity(
    activities: list[str],
    similar_days: list[DayMatchResult],
) -> tuple[list[str], list[str]]:
    """Split *activities* into ``(unique, common)`` by how many similar days share them."""
    unique: list[str] = []
    common: list[str] = []
    total = max(len(similar_days), 1)
    for activity in activities:
        appearances = sum(
            1
            for day in similar_days
            if any(detail.activity == activity for detail in day.match_details)
        )
        if appearances / total < RARE_ACTIVITY_RATIO:
            unique.append(activity)
        else:
            common.append(activity)
    return unique, common
