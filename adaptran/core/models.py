"""
Core data models for adaptran.

This module defines the data structures shared by the translation pipeline,
the cache and the vocabulary estimator. All models serialize to plain
dictionaries (camelCase keys) so they can be stored in any key-value store.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Optional, Any, Set, Tuple
import time


class ExamType(Enum):
    """Exam a learner's level is calibrated against."""
    CET4 = "cet4"
    CET6 = "cet6"
    TOEFL = "toefl"
    IELTS = "ielts"
    GRE = "gre"
    CUSTOM = "custom"

    @property
    def display_name(self) -> str:
        return EXAM_DISPLAY_NAMES[self]

    @property
    def base_vocabulary(self) -> int:
        return EXAM_VOCABULARY_SIZES[self]


EXAM_VOCABULARY_SIZES: Dict[ExamType, int] = {
    ExamType.CET4: 4500,
    ExamType.CET6: 6000,
    ExamType.TOEFL: 8000,
    ExamType.IELTS: 7000,
    ExamType.GRE: 12000,
    ExamType.CUSTOM: 5000,
}

MIN_VOCABULARY = 1000
MAX_VOCABULARY = 15000

EXAM_DISPLAY_NAMES: Dict[ExamType, str] = {
    ExamType.CET4: "CET-4",
    ExamType.CET6: "CET-6",
    ExamType.TOEFL: "TOEFL",
    ExamType.IELTS: "IELTS",
    ExamType.GRE: "GRE",
    ExamType.CUSTOM: "Custom",
}


class TranslationMode(Enum):
    """How translations are presented to the learner."""
    INLINE_ONLY = "inline-only"        # Only difficult spans, shown inline
    BILINGUAL = "bilingual"            # Full translation under the original
    FULL_TRANSLATE = "full-translate"  # Full translation, difficult spans highlighted


class ParagraphStatus(Enum):
    """Outcome of one paragraph in a batch."""
    TRANSLATED = "translated"
    CACHED = "cached"
    SKIPPED = "skipped"
    UNTRANSLATED = "untranslated"


@dataclass
class UnknownWordEntry:
    """A word the learner marked as unknown, scheduled for review."""
    word: str
    context: str = ""
    translation: str = ""
    marked_at: float = field(default_factory=time.time)
    review_count: int = 0
    last_review_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word": self.word,
            "context": self.context,
            "translation": self.translation,
            "markedAt": self.marked_at,
            "reviewCount": self.review_count,
            "lastReviewAt": self.last_review_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> UnknownWordEntry:
        return cls(
            word=str(data.get("word", "")),
            context=str(data.get("context", "")),
            translation=str(data.get("translation", "")),
            marked_at=float(data.get("markedAt", time.time())),
            review_count=int(data.get("reviewCount", 0)),
            last_review_at=data.get("lastReviewAt"),
        )


@dataclass
class UserProfile:
    """
    Learner profile.

    Invariants: a word is never both known and unknown (case-insensitive),
    and there is at most one unknown entry per lowercase word. The estimate
    is kept unrounded so small adjustments accumulate.
    """
    exam_type: ExamType = ExamType.CET4
    exam_score: Optional[float] = 425
    estimated_vocabulary: float = 4500
    known_words: Set[str] = field(default_factory=set)
    unknown_words: List[UnknownWordEntry] = field(default_factory=list)
    level_confidence: float = 0.5
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def find_unknown(self, word: str) -> Optional[UnknownWordEntry]:
        """Return the unknown entry for a word, if any."""
        lower = word.lower()
        for entry in self.unknown_words:
            if entry.word.lower() == lower:
                return entry
        return None

    def is_known(self, word: str) -> bool:
        return word.lower() in self.known_words

    def is_unknown(self, word: str) -> bool:
        return self.find_unknown(word) is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "examType": self.exam_type.value,
            "examScore": self.exam_score,
            "estimatedVocabulary": self.estimated_vocabulary,
            "knownWords": sorted(self.known_words),
            "unknownWords": [e.to_dict() for e in self.unknown_words],
            "levelConfidence": self.level_confidence,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> UserProfile:
        """
        Build a profile from stored or imported data.

        Out-of-range numbers are clamped. Unknown entries are lowercased and
        deduplicated (last entry wins), and a word with an unknown entry is
        dropped from the known set.
        """
        now = time.time()

        unknown: Dict[str, UnknownWordEntry] = {}
        for raw in data.get("unknownWords") or []:
            entry = UnknownWordEntry.from_dict(raw)
            entry.word = entry.word.lower()
            if not entry.word:
                continue
            unknown.pop(entry.word, None)
            unknown[entry.word] = entry

        known = {str(w).lower() for w in data.get("knownWords") or []}
        known.difference_update(unknown)

        estimate = float(data.get("estimatedVocabulary", 4500))
        confidence = float(data.get("levelConfidence", 0.5))

        return cls(
            exam_type=ExamType(data.get("examType", ExamType.CET4.value)),
            exam_score=data.get("examScore"),
            estimated_vocabulary=max(MIN_VOCABULARY, min(MAX_VOCABULARY, estimate)),
            known_words=known,
            unknown_words=list(unknown.values()),
            level_confidence=max(0.0, min(1.0, confidence)),
            created_at=float(data.get("createdAt", now)),
            updated_at=float(data.get("updatedAt", now)),
        )


def _parse_position(value: Any) -> Tuple[int, int]:
    """(start, end) offsets from model output; anything malformed becomes (0, 0)."""
    if isinstance(value, (list, tuple)) and len(value) == 2:
        try:
            return int(value[0]), int(value[1])
        except (TypeError, ValueError):
            pass
    return (0, 0)


@dataclass
class TranslatedWord:
    """A word or phrase annotated with its translation."""
    original: str
    translation: str
    position: Tuple[int, int] = (0, 0)
    difficulty: int = 5  # 1-10
    is_phrase: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original,
            "translation": self.translation,
            "position": list(self.position),
            "difficulty": self.difficulty,
            "isPhrase": self.is_phrase,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TranslatedWord:
        position = _parse_position(data.get("position"))
        try:
            difficulty = int(data.get("difficulty") or 5)
        except (TypeError, ValueError):
            difficulty = 5
        return cls(
            original=str(data.get("original") or ""),
            translation=str(data.get("translation") or ""),
            position=position,
            difficulty=max(1, min(10, difficulty)),
            is_phrase=bool(data.get("isPhrase", False)),
        )


@dataclass
class TranslatedSentence:
    """A complex sentence with its translation."""
    original: str
    translation: str
    grammar_note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"original": self.original, "translation": self.translation}
        if self.grammar_note:
            data["grammarNote"] = self.grammar_note
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TranslatedSentence:
        note = data.get("grammarNote")
        return cls(
            original=str(data.get("original") or ""),
            translation=str(data.get("translation") or ""),
            grammar_note=str(note) if note else None,
        )


@dataclass
class GrammarPoint:
    """A grammar structure worth explaining (inversion, subjunctive, ...)."""
    original: str
    explanation: str
    position: Tuple[int, int] = (0, 0)
    type: str = "grammar"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original,
            "explanation": self.explanation,
            "position": list(self.position),
            "type": self.type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GrammarPoint:
        position = _parse_position(data.get("position"))
        return cls(
            original=str(data.get("original") or ""),
            explanation=str(data.get("explanation") or ""),
            position=position,
            type=str(data.get("type") or "grammar"),
        )


@dataclass
class TranslationResult:
    """
    Annotations for one paragraph.

    Words and sentences are unique by ``original`` within a result.
    """
    words: List[TranslatedWord] = field(default_factory=list)
    sentences: List[TranslatedSentence] = field(default_factory=list)
    grammar_points: List[GrammarPoint] = field(default_factory=list)
    full_text: Optional[str] = None
    cached: bool = False

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to display."""
        return not self.words and not self.sentences and not self.full_text

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "words": [w.to_dict() for w in self.words],
            "sentences": [s.to_dict() for s in self.sentences],
        }
        if self.grammar_points:
            data["grammarPoints"] = [g.to_dict() for g in self.grammar_points]
        if self.full_text is not None:
            data["fullText"] = self.full_text
        if self.cached:
            data["cached"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TranslationResult:
        full_text = data.get("fullText")
        return cls(
            words=[TranslatedWord.from_dict(w) for w in data.get("words") or [] if isinstance(w, dict)],
            sentences=[TranslatedSentence.from_dict(s) for s in data.get("sentences") or [] if isinstance(s, dict)],
            grammar_points=[GrammarPoint.from_dict(g) for g in data.get("grammarPoints") or [] if isinstance(g, dict)],
            full_text=str(full_text) if full_text else None,
            cached=bool(data.get("cached", False)),
        )


@dataclass
class CacheEntry:
    """Stored translation keyed by paragraph fingerprint."""
    fingerprint: str
    result: TranslationResult
    stored_at: float
    version: int
    mode: str = TranslationMode.INLINE_ONLY.value
    page_url: str = ""
    last_accessed_at: Optional[float] = None

    def is_expired(self, now: float, expire_time: float) -> bool:
        return now - self.stored_at > expire_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "textHash": self.fingerprint,
            "result": self.result.to_dict(),
            "createdAt": self.stored_at,
            "lastAccessedAt": self.last_accessed_at or self.stored_at,
            "version": self.version,
            "mode": self.mode,
            "pageUrl": self.page_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], version: int) -> CacheEntry:
        stored_at = float(data["createdAt"])
        return cls(
            fingerprint=str(data["textHash"]),
            result=TranslationResult.from_dict(data.get("result") or {}),
            stored_at=stored_at,
            version=int(data.get("version", version)),
            mode=str(data.get("mode", TranslationMode.INLINE_ONLY.value)),
            page_url=str(data.get("pageUrl", "")),
            last_accessed_at=float(data.get("lastAccessedAt", stored_at)),
        )


@dataclass
class BatchConfig:
    """
    Process-wide batching and caching tunables.

    Defaults bound prompt confusion risk and token cost while keeping
    latency acceptable. Delays and ages are in seconds.
    """
    max_paragraphs_per_batch: int = 15
    max_chars_per_batch: int = 10000
    debounce_delay: float = 0.3
    max_cache_entries: int = 500
    cache_expire_time: float = 7 * 24 * 60 * 60

    def validate(self) -> List[str]:
        """Validate configuration and return any issues."""
        issues = []

        if self.max_paragraphs_per_batch < 1:
            issues.append("max_paragraphs_per_batch must be at least 1")

        if self.max_chars_per_batch < 1:
            issues.append("max_chars_per_batch must be at least 1")

        if self.debounce_delay < 0:
            issues.append("debounce_delay must be non-negative")

        if self.max_cache_entries < 1:
            issues.append("max_cache_entries must be at least 1")

        if self.cache_expire_time <= 0:
            issues.append("cache_expire_time must be positive")

        return issues

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> BatchConfig:
        data = data or {}
        defaults = cls()
        return cls(
            max_paragraphs_per_batch=int(data.get("max_paragraphs_per_batch", defaults.max_paragraphs_per_batch)),
            max_chars_per_batch=int(data.get("max_chars_per_batch", defaults.max_chars_per_batch)),
            debounce_delay=float(data.get("debounce_delay", defaults.debounce_delay)),
            max_cache_entries=int(data.get("max_cache_entries", defaults.max_cache_entries)),
            cache_expire_time=float(data.get("cache_expire_time", defaults.cache_expire_time)),
        )


@dataclass
class ParagraphRequest:
    """A paragraph submitted for translation."""
    id: str
    text: str
    element_path: str = ""


@dataclass
class BatchTranslationRequest:
    """Paragraphs to translate together."""
    paragraphs: List[ParagraphRequest]
    mode: TranslationMode = TranslationMode.INLINE_ONLY
    page_url: str = ""
    user_profile: Optional[UserProfile] = None
    force_refresh: bool = False  # Bypass cache reads, merge into existing entries


@dataclass
class ParagraphResult:
    """Per-paragraph outcome returned to the caller."""
    id: str
    result: TranslationResult = field(default_factory=TranslationResult)
    status: ParagraphStatus = ParagraphStatus.TRANSLATED
    error: Optional[BaseException] = None

    @property
    def cached(self) -> bool:
        return self.status == ParagraphStatus.CACHED

    @property
    def retryable(self) -> bool:
        """Untranslated paragraphs can be resubmitted individually."""
        return self.status == ParagraphStatus.UNTRANSLATED


@dataclass
class BatchTranslationResponse:
    """Results in request order plus call accounting."""
    results: List[ParagraphResult]
    api_call_count: int = 0
    cache_hit_count: int = 0
