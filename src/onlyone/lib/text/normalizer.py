"""Text normalization pipeline.

Canonicalizes raw post text before any matching happens and extracts the
side signals the scorer needs:

1. Unicode NFC (plus typographic apostrophes folded to ``'``).
2. Contraction expansion, so that negation is visible ("didn't" → "did not").
3. Emoji extraction into ``:tag:`` tokens.
4. British → American spelling.
5. Digit/unit spacing ("2am" → "2 am").
6. Punctuation removal (apostrophes and tag colons survive).
7. Negation detection on the expanded text.
8. Time-context tags.
9. Lowercasing and whitespace collapse.

Everything here is pure and deterministic, and ``normalize_text`` is
idempotent on its own output.
"""

import re
import unicodedata

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Lexicons
# ---------------------------------------------------------------------------

CONTRACTIONS: dict[str, str] = {
    # Negations first; negation detection depends on these.
    "didn't": "did not",
    "don't": "do not",
    "doesn't": "does not",
    "haven't": "have not",
    "hasn't": "has not",
    "hadn't": "had not",
    "won't": "will not",
    "wouldn't": "would not",
    "can't": "can not",
    "cannot": "can not",
    "couldn't": "could not",
    "shouldn't": "should not",
    "isn't": "is not",
    "aren't": "are not",
    "wasn't": "was not",
    "weren't": "were not",
    "ain't": "am not",
    "i'm": "i am",
    "i've": "i have",
    "i'd": "i would",
    "i'll": "i will",
    "you're": "you are",
    "you've": "you have",
    "you'd": "you would",
    "you'll": "you will",
    "he's": "he is",
    "she's": "she is",
    "it's": "it is",
    "we're": "we are",
    "we've": "we have",
    "they're": "they are",
    "they've": "they have",
    "that's": "that is",
    "what's": "what is",
    "where's": "where is",
    "who's": "who is",
    "let's": "let us",
}

SPELLING_VARIANTS: dict[str, str] = {
    "favourite": "favorite",
    "colour": "color",
    "honour": "honor",
    "flavour": "flavor",
    "neighbour": "neighbor",
    "travelling": "traveling",
    "travelled": "traveled",
    "cancelled": "canceled",
    "organised": "organized",
    "realised": "realized",
    "practised": "practiced",
    "centre": "center",
    "theatre": "theater",
    "metre": "meter",
    "litre": "liter",
    "programme": "program",
    "doughnut": "donut",
}

EMOJI_TAGS: dict[str, str] = {
    "\U0001F600": ":smile:",
    "\U0001F601": ":grin:",
    "\U0001F602": ":joy:",
    "\U0001F923": ":rofl:",
    "\U0001F60A": ":blush:",
    "\U0001F60D": ":heart_eyes:",
    "\U0001F970": ":smiling_face_with_hearts:",
    "\U0001F60E": ":sunglasses:",
    "\U0001F914": ":thinking:",
    "\U0001F634": ":sleeping:",
    "\U0001F60B": ":yum:",
    "\U0001F355": ":pizza:",
    "\U0001F354": ":burger:",
    "\U0001F366": ":ice_cream:",
    "\U0001F37F": ":popcorn:",
    "\U0001F3C3": ":running:",
    "⚽": ":soccer:",
    "\U0001F3C0": ":basketball:",
    "\U0001F3BE": ":tennis:",
    "\U0001F3CA": ":swimming:",
    "\U0001F6B4": ":biking:",
    "\U0001F4DA": ":books:",
    "\U0001F3AE": ":video_game:",
    "\U0001F3AC": ":movie:",
    "\U0001F3B5": ":music:",
    "☕": ":coffee:",
    "\U0001F305": ":sunrise:",
    "\U0001F303": ":night:",
}

NEGATION_WORDS = frozenset(
    {"not", "no", "never", "neither", "nobody", "nothing", "nowhere"}
)

# (pattern, tag) pairs; evaluated against lowercased, punctuation-free text.
TIME_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b(?:early morning|morning)\b"), "morning"),
    (re.compile(r"\bafternoon\b"), "afternoon"),
    (re.compile(r"\bevening\b"), "evening"),
    (re.compile(r"\b(?:tonight|last night|night)\b"), "night"),
    (re.compile(r"\b\d{1,2}\s*(?:am|a m)\b"), "early_hours"),
    (re.compile(r"\b\d{1,2}\s*(?:pm|p m)\b"), "daytime"),
    (re.compile(r"\b(?:today|this day)\b"), "today"),
    (re.compile(r"\byesterday\b"), "yesterday"),
    (re.compile(r"\b(?:earlier|before|just now)\b"), "recent"),
    (re.compile(r"\b(?:later|after)\b"), "future"),
]

_CONTRACTION_RE = re.compile(
    r"\b(" + "|".join(re.escape(c) for c in CONTRACTIONS) + r")\b",
    re.IGNORECASE,
)
_SPELLING_RE = re.compile(
    r"\b(" + "|".join(SPELLING_VARIANTS) + r")\b", re.IGNORECASE
)
_NEGATION_RE = re.compile(r"\b(?:" + "|".join(sorted(NEGATION_WORDS)) + r")\b")
_TIME_SUFFIX_RE = re.compile(r"(\d+)(am|pm)\b", re.IGNORECASE)
_UNIT_SUFFIX_RE = re.compile(
    r"(\d+(?:\.\d+)?)(km|mi|kg|lbs?|hrs?|mins?|secs?|k)\b", re.IGNORECASE
)
_PUNCTUATION_RE = re.compile(r"[^\w\s':]")
_WHITESPACE_RE = re.compile(r"\s+")
_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "ʼ": "'"})


class NormalizedText(BaseModel):
    """Result of running the normalization pipeline on one piece of text."""

    normalized: str = Field(..., description="Canonical text used for matching")
    original: str = Field(..., description="The input exactly as received")
    has_negation: bool = False
    time_tags: list[str] = Field(default_factory=list)
    emoji_tags: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------------

def normalize_unicode(text: str) -> str:
    return unicodedata.normalize("NFC", text).translate(_APOSTROPHES)


def expand_contractions(text: str) -> str:
    """Expand English contractions; negations become explicit ``not``."""
    return _CONTRACTION_RE.sub(lambda m: CONTRACTIONS[m.group(1).lower()], text)


def extract_emojis(text: str) -> tuple[str, list[str]]:
    """Replace known emoji with ``:tag:`` tokens.

    Returns the rewritten text and the tags in first-seen order.
    """
    tags: list[str] = []
    for emoji, tag in EMOJI_TAGS.items():
        if emoji in text:
            tags.append(tag)
            text = text.replace(emoji, f" {tag} ")
    return _WHITESPACE_RE.sub(" ", text).strip(), tags


def unify_spelling(text: str) -> str:
    return _SPELLING_RE.sub(lambda m: SPELLING_VARIANTS[m.group(1).lower()], text)


def normalize_digits(text: str) -> str:
    """Separate numbers from time and unit suffixes ("2am" → "2 am")."""
    text = _TIME_SUFFIX_RE.sub(r"\1 \2", text)
    text = _UNIT_SUFFIX_RE.sub(r"\1 \2", text)
    return _WHITESPACE_RE.sub(" ", text)


def clean_punctuation(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", _PUNCTUATION_RE.sub(" ", text)).strip()


def detect_negation(text: str) -> bool:
    return _NEGATION_RE.search(text.lower()) is not None


def extract_time_tags(text: str) -> list[str]:
    """Return coarse time-context labels mentioned in *text*."""
    lowered = text.lower()
    tags: list[str] = []
    for pattern, tag in TIME_PATTERNS:
        if tag not in tags and pattern.search(lowered):
            tags.append(tag)
    return tags


def normalize_text(text: str) -> NormalizedText:
    """Run the full normalization pipeline over *text*."""
    normalized = normalize_unicode(text)
    normalized = expand_contractions(normalized)
    normalized, emoji_tags = extract_emojis(normalized)
    normalized = unify_spelling(normalized)
    normalized = normalize_digits(normalized)
    normalized = clean_punctuation(normalized)

    has_negation = detect_negation(normalized)
    time_tags = extract_time_tags(normalized)

    normalized = _WHITESPACE_RE.sub(" ", normalized.lower()).strip()

    return NormalizedText(
        normalized=normalized,
        original=text,
        has_negation=has_negation,
        time_tags=time_tags,
        emoji_tags=emoji_tags,
    )


# ---------------------------------------------------------------------------
# Lexical similarity helpers
# ---------------------------------------------------------------------------

def ngram_jaccard(text1: str, text2: str, n: int = 3) -> float:
    """Jaccard similarity of character n-grams (whitespace ignored)."""

    def grams(text: str) -> set[str]:
        clean = _WHITESPACE_RE.sub("", text.lower())
        return {clean[i:i + n] for i in range(len(clean) - n + 1)}

    a, b = grams(text1), grams(text2)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def token_overlap(text1: str, text2: str) -> float:
    """Jaccard similarity of whitespace tokens."""
    a, b = set(text1.lower().split()), set(text2.lower().split())
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)
