"""Composite similarity scoring.

Provides named strategies that combine embedding, lexical, negation and
time-context signals into one score.  ``vector_edit`` is the default;
``ngram`` is an opt-in variant.
"""

from .base import (
    ScoringInput,
    SimilarityBreakdown,
    SimilarityStrategy,
    get_strategy,
    list_strategies,
    register_strategy,
)
from .ngram import NgramStrategy
from .vector_edit import VectorEditStrategy, edit_similarity

DEFAULT_STRATEGY = "vector_edit"

# Register built-in strategies
_vector_edit = VectorEditStrategy()
register_strategy(_vector_edit)

_ngram = NgramStrategy()
register_strategy(_ngram)

__all__ = [
    "DEFAULT_STRATEGY",
    "NgramStrategy",
    "ScoringInput",
    "SimilarityBreakdown",
    "SimilarityStrategy",
    "VectorEditStrategy",
    "edit_similarity",
    "get_strategy",
    "list_strategies",
    "register_strategy",
]
