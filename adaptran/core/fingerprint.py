"""Stable cache keys for paragraph text."""

import re
from typing import Union

from adaptran.core.models import TranslationMode

_WHITESPACE = re.compile(r"\s+")
_CJK = re.compile(r"[\u4e00-\u9fa5\u3000-\u303f\uff00-\uffef]")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def normalize_text(text: str) -> str:
    """Collapse whitespace runs to a single space and trim the ends."""
    return _WHITESPACE.sub(" ", text or "").strip()


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def _djb2_xor(text: str) -> int:
    """32-bit DJB2 variant (``h * 33 ^ c``) returning a signed int."""
    h = 5381
    for ch in text:
        h = (((h << 5) + h) & 0xFFFFFFFF) ^ ord(ch)
    if h & 0x80000000:
        h -= 0x100000000
    return h


def fingerprint(text: str, mode: Union[TranslationMode, str]) -> str:
    """
    Derive the cache key for a paragraph.

    The text is normalized and lowercased first, so whitespace and case
    differences map to the same key. This is a cache key, not a
    security primitive.

    Args:
        text: Paragraph text
        mode: Translation mode the result was produced for

    Returns:
        Key of the form ``"<mode>_<base36 hash>"``
    """
    mode_value = mode.value if isinstance(mode, TranslationMode) else str(mode)
    normalized = normalize_text(text).lower()
    return f"{mode_value}_{_to_base36(abs(_djb2_xor(normalized)))}"


def chinese_ratio(text: str) -> float:
    """Share of CJK characters (including fullwidth punctuation) in text."""
    if not text:
        return 0.0
    return len(_CJK.findall(text)) / len(text)
