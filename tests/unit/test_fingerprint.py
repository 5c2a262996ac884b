"""Unit tests for paragraph fingerprints."""

import pytest

from adaptran.core.fingerprint import chinese_ratio, fingerprint, normalize_text
from adaptran.core.models import TranslationMode


def test_normalize_collapses_whitespace():
    """Test whitespace runs become single spaces and ends are trimmed."""
    assert normalize_text("  The   quick\n\tbrown  fox ") == "The quick brown fox"
    assert normalize_text("") == ""


def test_fingerprint_ignores_whitespace_and_case():
    """Test texts differing only in whitespace or case share a key."""
    a = fingerprint("The Committee  deliberated\nat length.", TranslationMode.INLINE_ONLY)
    b = fingerprint("the committee deliberated at length.", TranslationMode.INLINE_ONLY)

    assert a == b


def test_fingerprint_is_mode_prefixed():
    """Test keys are partitioned by translation mode."""
    text = "Ubiquitous computing is everywhere."
    inline = fingerprint(text, TranslationMode.INLINE_ONLY)
    bilingual = fingerprint(text, TranslationMode.BILINGUAL)

    assert inline.startswith("inline-only_")
    assert bilingual.startswith("bilingual_")
    assert inline.split("_", 1)[1] == bilingual.split("_", 1)[1]


def test_fingerprint_accepts_mode_string():
    """Test a plain mode string gives the same key as the enum."""
    text = "Serendipity"
    assert fingerprint(text, "full-translate") == fingerprint(text, TranslationMode.FULL_TRANSLATE)


def test_fingerprint_is_stable_base36():
    """Test the hash part is lowercase base36 and deterministic."""
    key = fingerprint("Ephemeral beauty", TranslationMode.INLINE_ONLY)
    digest = key.split("_", 1)[1]

    assert digest
    assert all(c in "0123456789abcdefghijklmnopqrstuvwxyz" for c in digest)
    assert key == fingerprint("Ephemeral beauty", TranslationMode.INLINE_ONLY)


def test_fingerprint_differs_for_different_text():
    """Test different paragraphs get different keys."""
    assert fingerprint("alpha paragraph", "inline-only") != fingerprint("beta paragraph", "inline-only")


def test_empty_text_hash():
    """Test the empty string hashes to the DJB2 seed."""
    # 5381 in base36
    assert fingerprint("", "inline-only") == "inline-only_45h"


@pytest.mark.parametrize("text,expected", [
    ("", 0.0),
    ("plain english", 0.0),
    ("中文", 1.0),
    ("ab中文", 0.5),
])
def test_chinese_ratio(text, expected):
    """Test share of CJK characters."""
    assert chinese_ratio(text) == pytest.approx(expected)
