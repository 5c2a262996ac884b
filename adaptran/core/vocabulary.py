"""
Vocabulary size estimation from learner feedback.

The estimate is a single number of word families in [1000, 15000] with a
confidence in [0, 1]. Each known/unknown mark nudges the estimate towards
the vocabulary size implied by the word's difficulty, and nudges confidence
up. Higher confidence means smaller adjustments.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Any

from adaptran.core.models import MAX_VOCABULARY, MIN_VOCABULARY, ExamType, UnknownWordEntry, UserProfile
from adaptran.core.frequency import FrequencyManager
from adaptran.storage.manager import StorageManager

logger = logging.getLogger(__name__)

CONFIDENCE_STEP = 0.01
TEST_CONFIDENCE_STEP = 0.2

REVIEW_INTERVALS_DAYS = [1, 3, 7, 14, 30]
SECONDS_PER_DAY = 24 * 60 * 60


def _cet(score: float) -> float:
    return 0.6 + (score - 220) / (710 - 220) * 0.4


SCORE_MULTIPLIERS: Dict[ExamType, Callable[[float], float]] = {
    ExamType.CET4: _cet,
    ExamType.CET6: _cet,
    ExamType.TOEFL: lambda score: 0.5 + score / 120 * 0.5,
    ExamType.IELTS: lambda score: 0.5 + score / 9 * 0.5,
    ExamType.GRE: lambda score: 0.5 + (score - 130) / (170 - 130) * 0.5,
    ExamType.CUSTOM: lambda score: 1.0,
}


def calculate_vocabulary_size(exam_type: ExamType, score: Optional[float] = None) -> int:
    """
    Initial vocabulary estimate from an exam and optional score.

    Args:
        exam_type: Exam the learner took
        score: Exam score in that exam's native scale

    Returns:
        Base vocabulary for the exam scaled by the score multiplier
    """
    base = exam_type.base_vocabulary
    if score is None:
        return base
    return int(round(base * SCORE_MULTIPLIERS[exam_type](score)))


def update_vocabulary_estimate(
    estimate: float,
    word_difficulty: float,
    is_known: bool,
    confidence: float
) -> Tuple[float, float]:
    """
    Adjust the estimate after the learner marks one word.

    Knowing a word harder than predicted raises the estimate; missing a word
    easier than predicted lowers it. Consistent observations leave it alone.

    Args:
        estimate: Current vocabulary estimate
        word_difficulty: Word difficulty 1-10
        is_known: Whether the learner knew the word
        confidence: Current confidence 0-1

    Returns:
        (new_estimate, new_confidence)
    """
    expected = word_difficulty / 10 * MAX_VOCABULARY
    learning_rate = 0.1 * (1 - confidence)

    if is_known and expected > estimate:
        adjustment = (expected - estimate) * learning_rate
    elif not is_known and expected < estimate:
        adjustment = (expected - estimate) * learning_rate
    else:
        adjustment = 0.0

    new_estimate = max(MIN_VOCABULARY, min(MAX_VOCABULARY, estimate + adjustment))
    new_confidence = min(1.0, confidence + CONFIDENCE_STEP)
    return new_estimate, new_confidence


def is_word_likely_known(word: str, profile: UserProfile, difficulty: float) -> bool:
    """Explicit marks win; otherwise compare the word's percentile with the learner's."""
    if profile.is_known(word):
        return True
    if profile.is_unknown(word):
        return False
    return difficulty / 10 < profile.estimated_vocabulary / MAX_VOCABULARY


def calculate_review_priority(
    marked_at: float,
    review_count: int,
    last_review_at: Optional[float] = None,
    now: Optional[float] = None
) -> float:
    """
    Spaced-repetition priority of an unknown word.

    Priority is days since the last review (or since marking) divided by
    the target interval for the review count. Values >= 1 are due.
    """
    now = time.time() if now is None else now
    reference = last_review_at if last_review_at else marked_at
    days = (now - reference) / SECONDS_PER_DAY
    interval = REVIEW_INTERVALS_DAYS[min(review_count, len(REVIEW_INTERVALS_DAYS) - 1)]
    return days / interval


def level_label(vocabulary: float) -> str:
    if vocabulary < 3000:
        return "beginner"
    if vocabulary < 5000:
        return "intermediate"
    if vocabulary < 8000:
        return "upper-intermediate"
    if vocabulary < 12000:
        return "advanced"
    return "expert"


class UserLevelManager:
    """
    Learner profile operations on top of a StorageManager.

    Every mutating call loads the profile, applies the change and saves it
    back, so the stored profile is the single source of truth.
    """

    def __init__(
        self,
        storage: StorageManager,
        frequency: Optional[FrequencyManager] = None,
        clock: Callable[[], float] = time.time
    ):
        self.storage = storage
        self.frequency = frequency or FrequencyManager()
        self.clock = clock

    def initialize_profile(self, exam_type: ExamType, exam_score: Optional[float] = None) -> UserProfile:
        """Create a fresh profile calibrated from an exam, replacing any existing one."""
        now = self.clock()
        profile = UserProfile(
            exam_type=exam_type,
            exam_score=exam_score,
            estimated_vocabulary=calculate_vocabulary_size(exam_type, exam_score),
            level_confidence=0.5,
            created_at=now,
            updated_at=now,
        )
        self.storage.save_user_profile(profile)
        logger.info(
            f"Initialized profile: {exam_type.display_name}, "
            f"estimated vocabulary {profile.estimated_vocabulary}"
        )
        return profile

    def update_from_marking(self, word: str, is_known: bool, difficulty: float) -> UserProfile:
        """Apply the estimate update for one mark without touching word lists."""
        profile = self.storage.get_user_profile()
        self._apply_mark(profile, word, is_known, difficulty)
        self.storage.save_user_profile(profile)
        return profile

    def mark_known(self, word: str, difficulty: Optional[float] = None) -> UserProfile:
        """Record a word as known, dropping any unknown entry for it."""
        profile = self.storage.get_user_profile()
        if difficulty is None:
            difficulty = self.estimate_word_difficulty(word, profile)

        lower = word.lower()
        profile.unknown_words = [e for e in profile.unknown_words if e.word.lower() != lower]
        profile.known_words.add(lower)
        self._apply_mark(profile, word, True, difficulty)

        self.storage.save_user_profile(profile)
        return profile

    def mark_unknown(
        self,
        word: str,
        context: str = "",
        translation: str = "",
        difficulty: Optional[float] = None
    ) -> UserProfile:
        """Record a word as unknown, replacing any earlier entry for it."""
        profile = self.storage.get_user_profile()
        if difficulty is None:
            difficulty = self.estimate_word_difficulty(word, profile)

        lower = word.lower()
        profile.known_words.discard(lower)
        profile.unknown_words = [e for e in profile.unknown_words if e.word.lower() != lower]
        profile.unknown_words.append(UnknownWordEntry(
            word=lower,
            context=context,
            translation=translation,
            marked_at=self.clock(),
        ))
        self._apply_mark(profile, word, False, difficulty)

        self.storage.save_user_profile(profile)
        return profile

    def record_review(self, word: str, recalled: Optional[bool] = None) -> Optional[UnknownWordEntry]:
        """
        Count one review of an unknown word. Returns None if it is not tracked.

        When ``recalled`` is given, the outcome also updates the estimate
        using the word's frequency difficulty; the word stays on the review
        list either way.
        """
        profile = self.storage.get_user_profile()
        entry = profile.find_unknown(word)
        if entry is None:
            return None

        entry.review_count += 1
        entry.last_review_at = self.clock()
        self.storage.save_user_profile(profile)

        if recalled is not None:
            self.update_from_marking(entry.word, recalled, self.frequency.get_difficulty(entry.word))
        return entry

    def due_reviews(self, limit: Optional[int] = None) -> List[Tuple[UnknownWordEntry, float]]:
        """Unknown words with priority >= 1, most overdue first."""
        profile = self.storage.get_user_profile()
        now = self.clock()
        ranked = [
            (entry, calculate_review_priority(entry.marked_at, entry.review_count, entry.last_review_at, now))
            for entry in profile.unknown_words
        ]
        due = sorted((item for item in ranked if item[1] >= 1), key=lambda item: item[1], reverse=True)
        return due[:limit] if limit is not None else due

    def update_from_test_result(
        self,
        correct_answers: int,
        total_questions: int,
        difficulties: Sequence[float]
    ) -> UserProfile:
        """
        Re-estimate from a quick vocabulary test.

        The first ``correct_answers`` questions are counted as correct, each
        weighted by its difficulty. Weighted accuracy maps linearly onto
        2000-15000 words.

        Args:
            correct_answers: Number of correct answers
            total_questions: Number of questions asked
            difficulties: Difficulty 1-10 of each question

        Returns:
            Updated profile
        """
        profile = self.storage.get_user_profile()

        weighted_correct = 0.0
        total_weight = 0.0
        for i in range(total_questions):
            weight = difficulties[i] / 10
            total_weight += weight
            if i < correct_answers:
                weighted_correct += weight

        accuracy = weighted_correct / total_weight if total_weight else 0.0
        profile.estimated_vocabulary = int(round(2000 + accuracy * 13000))
        profile.level_confidence = min(1.0, profile.level_confidence + TEST_CONFIDENCE_STEP)
        profile.updated_at = self.clock()

        self.storage.save_user_profile(profile)
        logger.info(f"Test result {correct_answers}/{total_questions}: vocabulary now {profile.estimated_vocabulary}")
        return profile

    def estimate_word_difficulty(self, word: str, profile: Optional[UserProfile] = None) -> int:
        """
        Difficulty 1-10 of a word for this learner.

        Personal history first (known -> 1, unknown -> 10), then the
        frequency tables adjusted by length and suffix heuristics.
        """
        profile = profile or self.storage.get_user_profile()
        if profile.is_known(word):
            return 1
        if profile.is_unknown(word):
            return 10

        difficulty = self.frequency.get_difficulty(word)
        lower = word.lower()
        adjustment = 0

        # Very short words are usually easier
        if len(word) <= 3 and difficulty > 3:
            adjustment -= 2

        if len(word) > 10:
            if lower.endswith(("ing", "ed", "ly", "ment")):
                adjustment -= 1
            else:
                adjustment += 1

        return max(1, min(10, difficulty + adjustment))

    def should_reassess(self) -> bool:
        """Low confidence, or many marks since an assessment over 30 days old."""
        profile = self.storage.get_user_profile()
        if profile.level_confidence < 0.3:
            return True

        marked = len(profile.known_words) + len(profile.unknown_words)
        days = (self.clock() - profile.updated_at) / SECONDS_PER_DAY
        return marked > 100 and days > 30

    def get_stats(self) -> Dict[str, Any]:
        profile = self.storage.get_user_profile()
        return {
            "exam_type": profile.exam_type.display_name,
            "estimated_vocabulary": int(round(profile.estimated_vocabulary)),
            "known_words_count": len(profile.known_words),
            "unknown_words_count": len(profile.unknown_words),
            "confidence": profile.level_confidence,
            "level": level_label(profile.estimated_vocabulary),
        }

    def _apply_mark(self, profile: UserProfile, word: str, is_known: bool, difficulty: float) -> None:
        old = profile.estimated_vocabulary
        profile.estimated_vocabulary, profile.level_confidence = update_vocabulary_estimate(
            profile.estimated_vocabulary, difficulty, is_known, profile.level_confidence
        )
        logger.debug(
            f"Marked '{word}' {'known' if is_known else 'unknown'} (difficulty {difficulty}): "
            f"vocabulary {old:.0f} -> {profile.estimated_vocabulary:.0f}"
        )
