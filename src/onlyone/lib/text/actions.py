"""Action-verb extraction and comparison.

Full-text embeddings confuse a shared context with a shared action:
"watching cricket" and "playing cricket" embed very close together. The
matcher therefore identifies the primary action verb of each post and
refuses to match posts whose actions differ.

Extraction order:

1. Multi-word patterns ("went for a jog", "went swimming", "had a
   football match", phrasal idioms such as "worked out").
2. A curated list of common action-verb surface forms.
3. A spaCy part-of-speech parse (gerunds first, then concrete verbs,
   light verbs such as be/have/do/go/get only as a last resort).

The result is reduced with :func:`stem_verb` before comparison.
"""

import logging
import os
import re
import threading

from pydantic import BaseModel
from rapidfuzz.distance import Levenshtein

from .normalizer import expand_contractions, normalize_unicode

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Lexicons
# ---------------------------------------------------------------------------

IRREGULAR_VERBS: dict[str, str] = {
    "ate": "eat",
    "eaten": "eat",
    "had": "have",
    "has": "have",
    "made": "make",
    "took": "take",
    "taken": "take",
    "went": "go",
    "gone": "go",
    "did": "do",
    "does": "do",
    "goes": "go",
    "done": "do",
    "saw": "see",
    "seen": "see",
    "ran": "run",
    "swam": "swim",
    "drank": "drink",
    "wrote": "write",
    "written": "write",
    "bought": "buy",
    "brought": "bring",
    "caught": "catch",
    "taught": "teach",
    "thought": "think",
    "slept": "sleep",
    "met": "meet",
    "sang": "sing",
    "sung": "sing",
    "rode": "ride",
    "ridden": "ride",
    "drove": "drive",
    "driven": "drive",
    "flew": "fly",
    "flown": "fly",
    "built": "build",
    "won": "win",
    "lost": "lose",
    "got": "get",
    "gotten": "get",
    "heard": "hear",
    "found": "find",
    "left": "leave",
    "spent": "spend",
    "sat": "sit",
    "grew": "grow",
    "drew": "draw",
    "threw": "throw",
    "fed": "feed",
}

# Surface forms scanned in order of appearance when no pattern applies.
ACTION_VERBS = frozenset({
    "eat", "eats", "ate", "eaten", "eating",
    "drink", "drinks", "drank", "drinking",
    "cook", "cooks", "cooked", "cooking",
    "bake", "bakes", "baked", "baking",
    "make", "makes", "made", "making",
    "prepare", "prepared", "preparing",
    "grill", "grilled", "grilling",
    "brew", "brewed", "brewing",
    "play", "plays", "played", "playing",
    "watch", "watches", "watched", "watching",
    "view", "viewed", "viewing",
    "read", "reads", "reading",
    "write", "writes", "wrote", "written", "writing",
    "listen", "listens", "listened", "listening",
    "hear", "heard",
    "run", "runs", "ran", "running",
    "jog", "jogs", "jogged", "jogging",
    "walk", "walks", "walked", "walking",
    "stroll", "strolled", "strolling",
    "hike", "hiked", "hiking",
    "swim", "swims", "swam", "swimming",
    "bike", "biked", "biking",
    "cycle", "cycled", "cycling",
    "ride", "rode", "ridden", "riding",
    "drive", "drove", "driving",
    "fly", "flew", "flying",
    "travel", "traveled", "traveling",
    "climb", "climbed", "climbing",
    "ski", "skied", "skiing",
    "surf", "surfed", "surfing",
    "dance", "danced", "dancing",
    "sing", "sang", "sung", "singing",
    "paint", "painted", "painting",
    "draw", "drew", "drawing",
    "knit", "knitted", "knitting",
    "exercise", "exercised", "exercising",
    "train", "trained", "training",
    "stretch", "stretched", "stretching",
    "meditate", "meditated", "meditating",
    "study", "studied", "studying",
    "learn", "learned", "learnt", "learning",
    "teach", "taught", "teaching",
    "work", "worked", "working",
    "code", "coded", "coding",
    "build", "built", "building",
    "fix", "fixed", "fixing",
    "clean", "cleaned", "cleaning",
    "wash", "washed", "washing",
    "garden", "gardened", "gardening",
    "plant", "planted", "planting",
    "shop", "shopped", "shopping",
    "buy", "bought", "buying",
    "order", "ordered", "ordering",
    "call", "called", "calling",
    "text", "texted", "texting",
    "talk", "talked", "talking",
    "visit", "visited", "visiting",
    "meet", "met", "meeting",
    "sleep", "slept", "sleeping",
    "nap", "napped", "napping",
    "win", "won", "winning",
    "lose", "lost", "losing",
    "finish", "finished", "finishing",
    "start", "started", "starting",
    "try", "tried", "trying",
    "see", "saw", "seen",
    "consume", "consumed", "consuming",
    "feed", "fed", "feeding",
    "adopt", "adopted", "adopting",
    "celebrate", "celebrated", "celebrating",
})

# Verbs that carry little meaning on their own; used only when nothing else is found.
LIGHT_VERBS = frozenset({
    "be", "am", "is", "are", "was", "were", "been", "being",
    "have", "has", "had", "having",
    "do", "does", "did", "done", "doing",
    "go", "goes", "went", "gone", "going",
    "get", "gets", "got", "gotten", "getting",
})

SYNONYM_GROUPS: list[frozenset[str]] = []  # filled below once stem_verb exists

_SYNONYM_SOURCES = [
    ("eat", "have", "consume"),
    ("make", "cook", "bake", "prepare"),
    ("watch", "see", "view"),
    ("jog", "run"),
    ("walk", "stroll"),
    ("workout", "exercise", "train"),
    ("bike", "cycle", "ride"),
    ("listen", "hear"),
]

# Canonical action for phrasal idioms.
PHRASAL_IDIOMS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b(?:work|works|worked|working) out\b"), "workout"),
    (re.compile(r"\b(?:hit|hits|hitting) the gym\b"), "workout"),
    (re.compile(r"\b(?:go|goes|went|going|gone) to the gym\b"), "workout"),
    (re.compile(r"\b(?:go|goes|went|going) for a workout\b"), "workout"),
]

# Modifiers skipped in "went for a <modifier> <noun>".
_NOUN_MODIFIERS = frozenset({
    "morning", "afternoon", "evening", "night", "late", "early", "quick",
    "long", "short", "nice", "little", "brisk", "good", "great", "big",
    "small", "lovely", "relaxing", "solo",
})

_WENT_FOR_RE = re.compile(r"\bwent for an? (\w+)(?: (\w+))?")
_WENT_GERUND_RE = re.compile(r"\b(?:went|go|goes|going) (\w+ing)\b")
_DID_VERB_RE = re.compile(r"\b(?:did|do|does) (?:not )?(\w+)")
_HAD_GAME_RE = re.compile(r"\bhad an? (\w+) (?:game|match)\b")

_DID_SKIP = frozenset({
    "a", "an", "the", "it", "that", "this", "some", "my", "not", "so",
    "nothing", "anything", "something", "everything", "well", "great",
})

_TOKEN_RE = re.compile(r"[a-z']+")
_DOUBLE_KEEP = frozenset("lsz")
_VOWELS = frozenset("aeiou")


# ---------------------------------------------------------------------------
# Stemming
# ---------------------------------------------------------------------------

def _strip_suffix(word: str) -> str:
    if word.endswith(("ies", "ied")) and len(word) > 4:
        return word[:-3] + "y"

    for suffix in ("ing", "ed"):
        if word.endswith(suffix) and len(word) - len(suffix) >= 3:
            stem = word[: -len(suffix)]
            if (
                len(stem) >= 4
                and stem[-1] == stem[-2]
                and stem[-1] not in _VOWELS
                and stem[-1] not in _DOUBLE_KEEP
            ):
                stem = stem[:-1]
            return stem

    if word.endswith("es") and word[:-2].endswith(("ch", "sh", "x", "ss", "z")):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss") and len(word) > 3:
        return word[:-1]
    return word


def stem_verb(verb: str) -> str:
    """Reduce a verb (or verb-like token) to a comparable stem.

    Irregular forms are mapped to their base first, then common suffixes
    are stripped so that "baked", "bake" and "baking" all become ``bak``.
    """
    word = verb.lower().strip()
    word = IRREGULAR_VERBS.get(word, word)
    word = _strip_suffix(word)
    if len(word) > 3 and word.endswith("e") and not word.endswith("ee"):
        word = word[:-1]
    return word


SYNONYM_GROUPS.extend(
    frozenset(stem_verb(v) for v in group) for group in _SYNONYM_SOURCES
)


# ---------------------------------------------------------------------------
# Part-of-speech fallback
# ---------------------------------------------------------------------------

_TAGGER = None
_TAGGER_FAILED = False
_TAGGER_LOCK = threading.Lock()


def _load_tagger():
    """Load the spaCy pipeline lazily; returns ``None`` if it is unavailable."""
    global _TAGGER, _TAGGER_FAILED
    with _TAGGER_LOCK:
        if _TAGGER is not None or _TAGGER_FAILED:
            return _TAGGER
        model_name = os.environ.get("SPACY_MODEL", "en_core_web_sm").strip() or "en_core_web_sm"
        try:
            import spacy

            _TAGGER = spacy.load(model_name, exclude=["ner", "parser", "lemmatizer"])
            logger.info("Loaded spaCy model %s for verb extraction", model_name)
        except OSError:
            logger.warning(
                "spaCy model '%s' is unavailable; grammatical verb fallback disabled",
                model_name,
            )
            _TAGGER_FAILED = True
        return _TAGGER


def _pos_verb(text: str) -> str | None:
    tagger = _load_tagger()
    if tagger is None:
        return None

    gerund = concrete = light = None
    for token in tagger(text):
        if token.pos_ not in ("VERB", "AUX"):
            continue
        word = token.text.lower()
        if word in LIGHT_VERBS:
            light = light or word
        elif token.tag_ == "VBG":
            gerund = gerund or word
        else:
            concrete = concrete or word
    return gerund or concrete or light


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def _prepare(text: str) -> str:
    text = expand_contractions(normalize_unicode(text)).lower()
    return re.sub(r"[^a-z'\s]", " ", text)


def _pattern_verb(text: str) -> str | None:
    for pattern, action in PHRASAL_IDIOMS:
        if pattern.search(text):
            return action

    m = _WENT_FOR_RE.search(text)
    if m:
        first, second = m.group(1), m.group(2)
        if first in _NOUN_MODIFIERS and second:
            return second
        return first

    m = _HAD_GAME_RE.search(text)
    if m:
        return m.group(1)

    m = _WENT_GERUND_RE.search(text)
    if m:
        return m.group(1)

    m = _DID_VERB_RE.search(text)
    if m and m.group(1) not in _DID_SKIP:
        return m.group(1)
    return None


def extract_raw_action_verb(text: str) -> str | None:
    """Return the unstemmed surface form of the primary action verb."""
    if not text or not text.strip():
        return None

    prepared = _prepare(text)
    verb = _pattern_verb(prepared)
    if verb:
        return verb

    tokens = _TOKEN_RE.findall(prepared)
    for token in tokens:
        if token in ACTION_VERBS:
            return token

    verb = _pos_verb(prepared)
    if verb:
        return verb

    for token in tokens:
        if token in LIGHT_VERBS:
            return token
    return None


def extract_action_verb(text: str) -> str | None:
    """Return the stemmed primary action verb of *text*, or ``None``."""
    verb = extract_raw_action_verb(text)
    return stem_verb(verb) if verb else None


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

def are_same_action(verb1: str | None, verb2: str | None) -> bool:
    """Whether two surface verbs describe the same action.

    Both verbs are stemmed first; see :func:`are_same_stemmed_action`.
    """
    if not verb1 or not verb2:
        return False
    return are_same_stemmed_action(stem_verb(verb1), stem_verb(verb2))


def are_same_stemmed_action(stem1: str | None, stem2: str | None) -> bool:
    """Compare two already-stemmed verbs, such as ``Post.action_verb``.

    Stems must be equal, share a synonym group, or be within edit
    distance 2 of each other (typo tolerance, shorter stem ≥ 3 chars).
    ``stem_verb`` is not idempotent ("exercis" -> "exerci"), so stored
    stems must never be stemmed again.
    """
    if not stem1 or not stem2:
        return False

    if stem1 == stem2:
        return True

    for group in SYNONYM_GROUPS:
        if stem1 in group and stem2 in group:
            return True

    return (
        Levenshtein.distance(stem1, stem2) <= 2
        and min(len(stem1), len(stem2)) >= 3
    )


class ActionComparison(BaseModel):
    verb1: str | None
    verb2: str | None
    stem1: str | None
    stem2: str | None
    is_same: bool
    distance: int | None
    reason: str


def compare_actions(text1: str, text2: str) -> ActionComparison:
    """Extract and compare the action verbs of two texts (debug breakdown)."""
    verb1, verb2 = extract_raw_action_verb(text1), extract_raw_action_verb(text2)
    if not verb1 or not verb2:
        return ActionComparison(
            verb1=verb1, verb2=verb2, stem1=None, stem2=None,
            is_same=False, distance=None, reason="No verbs found",
        )

    stem1, stem2 = stem_verb(verb1), stem_verb(verb2)
    same = are_same_action(verb1, verb2)
    return ActionComparison(
        verb1=verb1,
        verb2=verb2,
        stem1=stem1,
        stem2=stem2,
        is_same=same,
        distance=Levenshtein.distance(stem1, stem2),
        reason=f"Same action: {stem1}" if same else f"Different actions: {stem1} != {stem2}",
    )
