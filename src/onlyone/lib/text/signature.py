"""Cheap deterministic content signatures.

A signature is built from the stemmed significant tokens of normalized
text, in order of first appearance:

* ``core`` – the first two stems, used for the exact-match fast path.
* ``full`` – the first five stems, used for broader legacy grouping.

Negation words are treated as significant so that "did not exercise"
never shares a signature with "exercised".
"""

import re

from pydantic import BaseModel, Field

from .actions import stem_verb
from .normalizer import NEGATION_WORDS

STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "been", "being", "but", "by",
    "did", "do", "does", "for", "from", "he", "her", "his", "i", "in", "is",
    "it", "its", "me", "my", "of", "on", "or", "our", "she", "so", "that",
    "the", "their", "them", "then", "there", "they", "this", "to", "up",
    "us", "was", "we", "were", "will", "with", "you", "your", "am", "just",
    "really", "very", "some", "all", "again", "also", "got",
})

CORE_SIZE = 2
FULL_SIZE = 5

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class ContentSignature(BaseModel):
    core: str = Field("", description="First two significant stems joined by ':'")
    full: str = Field("", description="First five significant stems joined by ':'")
    stems: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.core


def significant_stems(normalized: str) -> list[str]:
    """Distinct stems of the non-stopword tokens, in first-appearance order."""
    stems: list[str] = []
    for token in _TOKEN_RE.findall(normalized.lower()):
        if token in STOP_WORDS:
            continue
        if len(token) <= 2 and token not in NEGATION_WORDS:
            continue
        stem = token if token in NEGATION_WORDS else stem_verb(token)
        if stem not in stems:
            stems.append(stem)
    return stems


def generate_signature(normalized: str) -> ContentSignature:
    stems = significant_stems(normalized)
    return ContentSignature(
        core=":".join(stems[:CORE_SIZE]),
        full=":".join(stems[:FULL_SIZE]),
        stems=stems,
    )


def stem_jaccard(stems1: list[str], stems2: list[str]) -> float:
    """Jaccard similarity over two stem collections (0 when either is empty)."""
    a, b = set(stems1), set(stems2)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)
