"""Base abstraction for composite similarity strategies.

A strategy blends several signals (embedding similarity, lexical
similarity, negation consistency, time-context agreement) into a single
score in ``[0, 1]``.  Strategies are registered by name so the active one
can be chosen from configuration.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from ..embeddings import cosine_similarity
from ..text.signature import significant_stems, stem_jaccard
from ...models import Post

NEGATION_PENALTY = -0.25
TIME_BONUS = 0.05
TIME_PENALTY = -0.05


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class ScoringInput(BaseModel):
    """The per-post signals a strategy needs."""

    text: str = Field(..., description="Normalized content")
    embedding: list[float] | None = None
    has_negation: bool = False
    time_tags: list[str] = Field(default_factory=list)
    stems: list[str] = Field(default_factory=list)

    @classmethod
    def from_post(cls, post: Post) -> "ScoringInput":
        return cls(
            text=post.normalized_content,
            embedding=post.embedding,
            has_negation=post.has_negation,
            time_tags=post.time_tags,
            stems=significant_stems(post.normalized_content),
        )


class SimilarityBreakdown(BaseModel):
    """Composite score plus the components that produced it."""

    strategy: str
    composite_score: float = Field(..., ge=0.0, le=1.0)
    vector_score: float
    vector_source: str = Field(
        ..., description="'embedding' or 'stem_jaccard' when embeddings were missing"
    )
    edit_score: float | None = None
    jaccard_score: float | None = None
    token_score: float | None = None
    negation_penalty: float = 0.0
    time_adjustment: float = 0.0

    @property
    def negation_mismatch(self) -> bool:
        return self.negation_penalty < 0

    @property
    def embedding_similarity(self) -> float | None:
        """Raw embedding similarity, or ``None`` if it was not available."""
        return self.vector_score if self.vector_source == "embedding" else None

    def describe(self) -> str:
        parts = [f"V:{self.vector_score * 100:.0f}%({self.vector_source})"]
        if self.edit_score is not None:
            parts.append(f"Ed:{self.edit_score * 100:.0f}%")
        if self.jaccard_score is not None:
            parts.append(f"J:{self.jaccard_score * 100:.0f}%")
        if self.token_score is not None:
            parts.append(f"T:{self.token_score * 100:.0f}%")
        parts.append(f"N:{self.negation_penalty:.2f}")
        parts.append(f"R:{self.time_adjustment:.2f}")
        return " ".join(parts)


# ---------------------------------------------------------------------------
# Shared components
# ---------------------------------------------------------------------------

def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def vector_similarity(
    a: ScoringInput, b: ScoringInput, raw_similarity: float | None = None
) -> tuple[float, str]:
    """Embedding cosine similarity, falling back to stem Jaccard.

    *raw_similarity* (e.g. from a vector search) takes precedence over
    recomputing the cosine.
    """
    if raw_similarity is not None:
        return raw_similarity, "embedding"
    if a.embedding is not None and b.embedding is not None:
        return cosine_similarity(a.embedding, b.embedding), "embedding"
    return stem_jaccard(a.stems, b.stems), "stem_jaccard"


def negation_penalty(a: ScoringInput, b: ScoringInput) -> float:
    return NEGATION_PENALTY if a.has_negation != b.has_negation else 0.0


def time_adjustment(a: ScoringInput, b: ScoringInput) -> float:
    """+0.05 when time tags overlap, -0.05 when both are set but disjoint."""
    if not a.time_tags or not b.time_tags:
        return 0.0
    if set(a.time_tags) & set(b.time_tags):
        return TIME_BONUS
    return TIME_PENALTY


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class SimilarityStrategy(ABC):
    """Abstract base class for named similarity strategies.

    Subclasses must implement `name` (property) and `score`.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name identifying this strategy (e.g. ``vector_edit``)."""
        ...

    @abstractmethod
    def score(
        self,
        a: ScoringInput,
        b: ScoringInput,
        raw_similarity: float | None = None,
    ) -> SimilarityBreakdown:
        """Score how likely *a* and *b* describe the same action.

        Parameters
        ----------
        a, b:
            Signals of the two posts being compared.
        raw_similarity:
            Precomputed embedding similarity, if the caller already has it.

        Returns
        -------
        SimilarityBreakdown
        """
        ...


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_strategies: dict[str, SimilarityStrategy] = {}


def register_strategy(strategy: SimilarityStrategy) -> None:
    """Register a strategy instance by its name."""
    _strategies[strategy.name] = strategy


def get_strategy(name: str) -> SimilarityStrategy | None:
    """Look up a registered strategy by name.  Returns ``None`` if not found."""
    return _strategies.get(name)


def list_strategies() -> list[str]:
    """Return the names of all registered strategies."""
    return list(_strategies.keys())
