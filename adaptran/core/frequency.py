"""
Word difficulty from layered exam vocabulary lists.

Level lists are JSON files of the form ``{"words": [...]}`` named after the
level (``common.json``, ``cet4.json``, ...). Missing files are skipped.

Difficulty scale:
    1     common / stop words
    3     CET-4
    5     CET-6
    7     TOEFL / IELTS
    8     not listed anywhere
    9     GRE
"""

import json
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data" / "vocabulary"

# Checked in order, easiest first
LEVELS = [
    ("common", 1),
    ("cet4", 3),
    ("cet6", 5),
    ("toefl", 7),
    ("ielts", 7),
    ("gre", 9),
]
UNLISTED_DIFFICULTY = 8
UNINITIALIZED_DIFFICULTY = 5

_NON_WORD = re.compile(r"[^\w\s']")
_DIGITS = re.compile(r"^\d+$")


class FrequencyManager:
    """Maps words to a 1-10 difficulty using exam word lists."""

    def __init__(self):
        self.word_sets: Dict[str, Set[str]] = {}
        self.initialized = False

    def load_directory(self, directory: Optional[Path] = None) -> "FrequencyManager":
        """Load every known level list found in a directory."""
        directory = Path(directory or DEFAULT_DATA_DIR)
        for level, _ in LEVELS:
            path = directory / f"{level}.json"
            if not path.exists():
                continue
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning(f"Could not read vocabulary list {path}: {e}")
                continue
            self.add_words(level, data.get("words", []))

        logger.debug(f"Loaded {len(self.word_sets)} vocabulary lists from {directory}")
        return self

    def add_words(self, level: str, words: Iterable[str]) -> None:
        """Add words to a level list."""
        self.word_sets.setdefault(level, set()).update(w.lower().strip() for w in words)
        self.initialized = True

    def get_difficulty(self, word: str) -> int:
        """Difficulty 1-10 for a word; 5 when no lists are loaded."""
        if not self.initialized:
            return UNINITIALIZED_DIFFICULTY

        lower = word.lower().strip()
        for level, difficulty in LEVELS:
            if lower in self.word_sets.get(level, ()):
                return difficulty
        return UNLISTED_DIFFICULTY

    def is_easy_word(self, word: str) -> bool:
        """Common or CET-4 word."""
        if not self.initialized:
            return False
        lower = word.lower().strip()
        return lower in self.word_sets.get("common", ()) or lower in self.word_sets.get("cet4", ())

    def get_frequency_rank(self, word: str) -> int:
        """Approximate frequency rank (lower is more frequent)."""
        if not self.initialized:
            return 50000
        return self.get_difficulty(word) * 1000

    @staticmethod
    def threshold_for(vocabulary_size: int) -> int:
        """Lowest difficulty a learner of this size is assumed to need help with."""
        if vocabulary_size < 3000:
            return 2
        if vocabulary_size < 5000:
            return 3
        if vocabulary_size < 8000:
            return 5
        return 7

    def has_potential_unknown_words(self, text: str, vocabulary_size: int) -> bool:
        """
        Check whether text may contain words above the learner's level.

        Used to skip upstream calls for paragraphs made only of easy words.
        Fails safe: returns True when no lists are loaded.

        Args:
            text: Paragraph text
            vocabulary_size: Estimated learner vocabulary

        Returns:
            False only if every word is below the learner's threshold
        """
        if not self.initialized or not text:
            return True

        words = _NON_WORD.sub(" ", text).split()
        threshold = self.threshold_for(vocabulary_size)

        for word in words:
            # Skip numbers and very short words
            if _DIGITS.match(word) or len(word) <= 2:
                continue
            if self.get_difficulty(word) >= threshold:
                return True

        return False


def load_default_frequency() -> FrequencyManager:
    """Frequency manager with the bundled word lists."""
    return FrequencyManager().load_directory(DEFAULT_DATA_DIR)
