"""Tests for content signatures."""

from .normalizer import normalize_text
from .signature import generate_signature, significant_stems, stem_jaccard


def signature_of(text):
    return generate_signature(normalize_text(text).normalized)


def test_same_action_different_day_shares_core():
    a = signature_of("Played cricket today")
    b = signature_of("played cricket yesterday")
    assert a.core == b.core == "play:cricket"
    assert a.full != b.full


def test_full_signature_keeps_five_stems():
    sig = signature_of("baked cookies, muffins, pies and tarts for the neighbours")
    assert sig.full == "bak:cooky:muffin:pie:tart"
    assert sig.core == "bak:cooky"


def test_negation_is_significant():
    assert signature_of("I didn't exercise today").core == "not:exercis"
    assert signature_of("I exercised today").core == "exercis:today"


def test_stop_words_only_is_empty():
    sig = signature_of("I am the")
    assert sig.is_empty
    assert sig.full == ""


def test_significant_stems_dedupe_in_order():
    assert significant_stems("ran and ran then running") == ["run"]


def test_stem_jaccard():
    assert stem_jaccard(["a", "b"], ["b", "c"]) == 1 / 3
    assert stem_jaccard([], ["a"]) == 0.0
