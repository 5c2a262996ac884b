"""
adaptran: Learner-adapted web text translation

Annotates the words, phrases and sentences of English text that are likely
above a learner's estimated vocabulary, while keeping paid model calls to a
minimum:

1. Content-addressed paragraph cache with expiry and LRU eviction
2. Debounced batching of paragraphs into a single prompt
3. Retry with exponential backoff for transient upstream failures
4. Vocabulary estimation from the learner's known/unknown marks

Usage:
    from adaptran import BatchTranslationService, ParagraphRequest
    from adaptran.translation.backends import create_backend

    service = BatchTranslationService(create_backend("openai"))
    results = await service.translate_paragraphs([
        ParagraphRequest(id="p1", text="The committee deliberated at length.")
    ])
"""

__version__ = "1.0.0"
__license__ = "MIT"

__all__ = [
    "__version__",
    "__license__",
]

# Core models
from adaptran.core.models import (
    ExamType,
    TranslationMode,
    ParagraphStatus,
    UserProfile,
    UnknownWordEntry,
    TranslatedWord,
    TranslatedSentence,
    GrammarPoint,
    TranslationResult,
    BatchConfig,
    ParagraphRequest,
    ParagraphResult,
    BatchTranslationRequest,
    BatchTranslationResponse
)
__all__.extend([
    "ExamType", "TranslationMode", "ParagraphStatus", "UserProfile", "UnknownWordEntry",
    "TranslatedWord", "TranslatedSentence", "GrammarPoint", "TranslationResult", "BatchConfig",
    "ParagraphRequest", "ParagraphResult", "BatchTranslationRequest", "BatchTranslationResponse"
])

# Fingerprinting and vocabulary estimation
from adaptran.core.fingerprint import fingerprint, normalize_text
from adaptran.core.vocabulary import (
    UserLevelManager,
    update_vocabulary_estimate,
    is_word_likely_known,
    calculate_review_priority,
    calculate_vocabulary_size
)
__all__.extend([
    "fingerprint", "normalize_text", "UserLevelManager", "update_vocabulary_estimate",
    "is_word_likely_known", "calculate_review_priority", "calculate_vocabulary_size"
])

# Pipeline
from adaptran.core.scheduler import BatchScheduler, split_into_batches
from adaptran.core.pipeline import BatchTranslationService
__all__.extend(["BatchScheduler", "split_into_batches", "BatchTranslationService"])

# Translation base
from adaptran.translation.base import UpstreamAdapter
from adaptran.translation.merge import merge_results
__all__.extend(["UpstreamAdapter", "merge_results"])
