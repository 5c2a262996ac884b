"""
Batch translation pipeline.

This module orchestrates one batch: fingerprint each paragraph, serve cache
hits, skip paragraphs that need no help, send the rest to the model in a
single prompt (with retries), parse and merge the answer, and write it
through to the cache unless the batch has been superseded.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from adaptran.core.fingerprint import chinese_ratio, fingerprint, normalize_text
from adaptran.core.frequency import FrequencyManager
from adaptran.core.models import (
    BatchConfig, BatchTranslationRequest, BatchTranslationResponse, ParagraphRequest,
    ParagraphResult, ParagraphStatus, TranslationMode, TranslationResult, UserProfile
)
from adaptran.core.scheduler import BatchScheduler
from adaptran.translation.base import UpstreamAdapter
from adaptran.translation.merge import merge_results
from adaptran.translation.prompts import render_batch_prompt, render_quick_prompt
from adaptran.translation.response_parser import parse_batch_response
from adaptran.utils.cache import TranslationCache
from adaptran.utils.retry import BATCH_RETRY_OPTIONS, QUICK_RETRY_OPTIONS, RetryOptions, execute

logger = logging.getLogger(__name__)

# Paragraphs with a larger share of CJK characters are already readable
MAX_CHINESE_RATIO = 0.2


def _always_current() -> bool:
    return True


class BatchTranslationService:
    """
    Translates groups of paragraphs with one upstream call per group.

    The cache and frequency tables are owned objects shared by reference;
    everything runs on a single event loop so no locking is needed.
    """

    def __init__(
        self,
        adapter: UpstreamAdapter,
        cache: Optional[TranslationCache] = None,
        config: Optional[BatchConfig] = None,
        frequency: Optional[FrequencyManager] = None,
        target_language: str = "Chinese",
        retry_options: RetryOptions = BATCH_RETRY_OPTIONS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.adapter = adapter
        self.config = config or BatchConfig()
        self.cache = cache or TranslationCache(config=self.config)
        self.frequency = frequency or FrequencyManager()
        self.target_language = target_language
        self.retry_options = retry_options
        self.sleep = sleep

        issues = self.config.validate()
        if issues:
            raise ValueError(f"Configuration issues: {', '.join(issues)}")

        # Statistics
        self.stats = {
            'requests': 0,
            'paragraphs': 0,
            'api_calls': 0,
            'cache_hits': 0,
            'skipped': 0,
            'discarded_writes': 0
        }

    def should_skip(self, text: str, profile: UserProfile) -> bool:
        """
        Local filters that avoid an upstream call.

        Skips blank paragraphs, paragraphs that are mostly Chinese, and
        paragraphs whose words all sit below the learner's level.
        """
        if not text or not text.strip():
            return True

        ratio = chinese_ratio(text)
        if ratio > MAX_CHINESE_RATIO:
            logger.debug(f"Skipping paragraph with {ratio:.1%} Chinese characters")
            return True

        if not self.frequency.has_potential_unknown_words(text, profile.estimated_vocabulary):
            logger.debug("Skipping paragraph below the learner's level")
            return True

        return False

    async def translate_batch(
        self,
        request: BatchTranslationRequest,
        is_current: Callable[[], bool] = _always_current
    ) -> BatchTranslationResponse:
        """
        Translate one batch of paragraphs.

        Args:
            request: Paragraphs, mode and learner profile
            is_current: Returns False once the batch has been superseded;
                results are then returned but not cached

        Returns:
            Results in request order with call accounting

        Raises:
            UpstreamError: Upstream call failed after retries
            ParseFailure: Model response could not be decoded
        """
        paragraphs = request.paragraphs
        profile = request.user_profile or UserProfile()
        mode = request.mode.value if isinstance(request.mode, TranslationMode) else str(request.mode)

        self.stats['requests'] += 1
        self.stats['paragraphs'] += len(paragraphs)

        keys = [fingerprint(p.text, mode) for p in paragraphs]
        results: Dict[int, ParagraphResult] = {}

        hits: Dict[str, TranslationResult] = {}
        if not request.force_refresh:
            hits, _ = self.cache.get_batch(keys)

        # Unique fingerprints still to translate, in first-seen order
        to_translate: Dict[str, str] = {}
        skipped = 0
        for i, para in enumerate(paragraphs):
            key = keys[i]
            if key in hits:
                results[i] = ParagraphResult(id=para.id, result=hits[key], status=ParagraphStatus.CACHED)
            elif key in to_translate:
                continue
            elif self.should_skip(para.text, profile):
                results[i] = ParagraphResult(id=para.id, status=ParagraphStatus.SKIPPED)
                skipped += 1
            else:
                to_translate[key] = para.text

        self.stats['cache_hits'] += len(hits)
        self.stats['skipped'] += skipped
        logger.info(
            f"Batch of {len(paragraphs)} paragraphs: {len(hits)} cached, "
            f"{skipped} skipped, {len(to_translate)} to translate"
        )

        translated: Dict[str, TranslationResult] = {}
        api_call_count = 0
        if to_translate:
            translated = await self._call_upstream(list(to_translate.keys()), list(to_translate.values()), profile)
            api_call_count = 1
            self.stats['api_calls'] += 1
            self._write_back(translated, mode, request.page_url, is_current)

        ordered = []
        for i, para in enumerate(paragraphs):
            if i in results:
                ordered.append(results[i])
            else:
                ordered.append(ParagraphResult(id=para.id, result=translated[keys[i]], status=ParagraphStatus.TRANSLATED))

        return BatchTranslationResponse(results=ordered, api_call_count=api_call_count, cache_hit_count=len(hits))

    async def _call_upstream(
        self,
        keys: List[str],
        texts: List[str],
        profile: UserProfile
    ) -> Dict[str, TranslationResult]:
        prompt = render_batch_prompt(
            profile.estimated_vocabulary,
            profile.exam_type,
            [normalize_text(t) for t in texts],
            self.target_language
        )
        logger.debug(f"Calling {self.adapter.provider} with {len(texts)} paragraphs, prompt length {len(prompt)}")

        content = await execute(lambda: self.adapter.send(prompt), self.retry_options, sleep=self.sleep)
        parsed = parse_batch_response(content, len(texts))

        return {key: merge_results(self.cache.peek(key), result) for key, result in zip(keys, parsed)}

    def _write_back(
        self,
        translated: Dict[str, TranslationResult],
        mode: str,
        page_url: str,
        is_current: Callable[[], bool]
    ) -> None:
        if not is_current():
            self.stats['discarded_writes'] += 1
            logger.info(f"Batch superseded, not caching {len(translated)} results")
            return

        # Empty results usually mean the model dropped the paragraph; keep them retryable
        entries = [
            (key, result, TranslationMode(mode), page_url)
            for key, result in translated.items()
            if not result.is_empty
        ]
        if entries:
            self.cache.put_batch(entries)

    def create_scheduler(
        self,
        profile: Optional[UserProfile] = None,
        mode: TranslationMode = TranslationMode.INLINE_ONLY,
        page_url: str = "",
        force_refresh: bool = False
    ) -> BatchScheduler:
        """Scheduler whose batches are translated by this service."""

        async def dispatch(batch: List[ParagraphRequest], is_current: Callable[[], bool]) -> List[ParagraphResult]:
            request = BatchTranslationRequest(
                paragraphs=batch,
                mode=mode,
                page_url=page_url,
                user_profile=profile,
                force_refresh=force_refresh,
            )
            response = await self.translate_batch(request, is_current)
            return response.results

        return BatchScheduler(dispatch, self.config)

    async def translate_paragraphs(
        self,
        paragraphs: List[ParagraphRequest],
        profile: Optional[UserProfile] = None,
        mode: TranslationMode = TranslationMode.INLINE_ONLY,
        page_url: str = "",
        force_refresh: bool = False
    ) -> List[ParagraphResult]:
        """
        Translate any number of paragraphs through the batch scheduler.

        Failed batches come back as ``UNTRANSLATED`` results rather than
        raising.
        """
        scheduler = self.create_scheduler(profile, mode, page_url, force_refresh)
        futures = scheduler.submit(paragraphs)
        scheduler.flush()
        return list(await asyncio.gather(*futures))

    async def quick_translate(self, text: str) -> str:
        """Translate a single word or phrase (plain text, no annotations)."""
        prompt = render_quick_prompt(text, self.target_language)
        content = await execute(
            lambda: self.adapter.send(prompt, json_mode=False),
            QUICK_RETRY_OPTIONS,
            sleep=self.sleep
        )
        return content.strip()

    def get_stats(self) -> Dict[str, Any]:
        stats = dict(self.stats)
        stats['cache'] = self.cache.get_stats()
        return stats
