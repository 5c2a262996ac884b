"""
Merging of translation results for incremental re-translation.

Annotations are keyed by their original text. Later results overwrite
earlier ones for the same key; annotations only present in the earlier
result are kept. Apply merges in increasing recency order.
"""

import copy
from typing import Dict, Iterable, List, Optional, TypeVar

from adaptran.core.models import TranslationResult

T = TypeVar("T")


def _merge_keyed(existing: Iterable[T], incoming: Iterable[T]) -> List[T]:
    merged: Dict[str, T] = {}
    for item in existing:
        merged[item.original] = item
    for item in incoming:
        merged[item.original] = item
    return [copy.deepcopy(item) for item in merged.values()]


def merge_results(existing: Optional[TranslationResult], incoming: TranslationResult) -> TranslationResult:
    """
    Combine a previous result with a newer one.

    Args:
        existing: Previously cached or partial result (may be None)
        incoming: Freshly returned result

    Returns:
        New result; neither input is modified
    """
    if existing is None:
        existing = TranslationResult()

    return TranslationResult(
        words=_merge_keyed(existing.words, incoming.words),
        sentences=_merge_keyed(existing.sentences, incoming.sentences),
        grammar_points=_merge_keyed(existing.grammar_points, incoming.grammar_points),
        full_text=incoming.full_text if incoming.full_text else existing.full_text,
        cached=False,
    )


def merge_many(results: Iterable[TranslationResult]) -> TranslationResult:
    """Fold results from oldest to newest."""
    merged = TranslationResult()
    for result in results:
        merged = merge_results(merged, result)
    return merged


def dedupe_result(result: TranslationResult) -> TranslationResult:
    """Enforce uniqueness by original text within a single result (last wins)."""
    return merge_results(TranslationResult(), result)
