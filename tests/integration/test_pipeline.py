"""
Integration tests for the batch translation pipeline.

The upstream model is replaced by FakeAdapter; cache, parser, merge,
retry and scheduler are the real implementations.
"""

import asyncio
import json

import pytest

from adaptran.core.exceptions import BatchFailure, ClientError, ParseFailure, ServerError
from adaptran.core.fingerprint import fingerprint
from adaptran.core.frequency import FrequencyManager
from adaptran.core.models import (
    BatchConfig, BatchTranslationRequest, ParagraphRequest, ParagraphStatus, TranslationMode
)
from adaptran.core.pipeline import BatchTranslationService

from tests.fixtures.fakes import FakeAdapter, paragraphs_in_prompt

TEXTS = [
    "The committee deliberated at length before reaching a verdict.",
    "Her explanation was remarkably lucid and concise.",
    "Ubiquitous sensors quietly collect environmental data.",
]


def requests_for(texts, prefix="p"):
    return [ParagraphRequest(id=f"{prefix}{i}", text=t) for i, t in enumerate(texts)]


def batch(texts, profile=None, **kwargs):
    return BatchTranslationRequest(paragraphs=requests_for(texts), user_profile=profile, **kwargs)


@pytest.fixture
def service(fake_adapter, cache, batch_config, no_sleep):
    """Service wired to the fake adapter with instant retries."""
    return BatchTranslationService(fake_adapter, cache=cache, config=batch_config, sleep=no_sleep)


@pytest.mark.asyncio
async def test_single_call_for_whole_batch(service, fake_adapter, cache, profile):
    """Test several paragraphs are translated with one upstream call."""
    response = await service.translate_batch(batch(TEXTS, profile))

    assert response.api_call_count == 1
    assert response.cache_hit_count == 0
    assert fake_adapter.call_count == 1
    assert [r.id for r in response.results] == ["p0", "p1", "p2"]
    assert all(r.status == ParagraphStatus.TRANSLATED for r in response.results)
    assert response.results[0].result.words[0].original == "committee"
    assert response.results[2].result.words[0].original == "Ubiquitous"
    assert len(cache) == 3


@pytest.mark.asyncio
async def test_prompt_reflects_learner(service, fake_adapter, profile):
    """Test the prompt carries the learner level and tagged paragraphs."""
    await service.translate_batch(batch(TEXTS[:2], profile))

    prompt = fake_adapter.prompts[0]
    assert "6000" in prompt
    assert "CET-6" in prompt
    assert [i for i, _ in paragraphs_in_prompt(prompt)] == [0, 1]


@pytest.mark.asyncio
async def test_repeat_request_served_from_cache(service, fake_adapter, profile):
    """Test normalized repeats are cache hits and make no call."""
    await service.translate_batch(batch(TEXTS, profile))

    variants = ["  " + TEXTS[0].upper(), TEXTS[1].replace(" ", "\n  "), TEXTS[2]]
    response = await service.translate_batch(batch(variants, profile))

    assert response.api_call_count == 0
    assert response.cache_hit_count == 3
    assert fake_adapter.call_count == 1
    assert all(r.status == ParagraphStatus.CACHED for r in response.results)
    assert all(r.result.cached for r in response.results)


@pytest.mark.asyncio
async def test_only_misses_are_sent(service, fake_adapter, profile):
    """Test cached paragraphs are left out of the prompt."""
    await service.translate_batch(batch(TEXTS[:1], profile))

    response = await service.translate_batch(batch(TEXTS, profile))

    assert response.cache_hit_count == 1
    sent = [text for _, text in paragraphs_in_prompt(fake_adapter.prompts[1])]
    assert sent == TEXTS[1:]
    assert [r.status for r in response.results] == [
        ParagraphStatus.CACHED, ParagraphStatus.TRANSLATED, ParagraphStatus.TRANSLATED
    ]


@pytest.mark.asyncio
async def test_modes_are_cached_separately(service, fake_adapter, profile):
    """Test a result for one mode is not served for another."""
    await service.translate_batch(batch(TEXTS[:1], profile, mode=TranslationMode.INLINE_ONLY))
    response = await service.translate_batch(batch(TEXTS[:1], profile, mode=TranslationMode.BILINGUAL))

    assert response.api_call_count == 1
    assert fake_adapter.call_count == 2


@pytest.mark.asyncio
async def test_duplicate_texts_translated_once(service, fake_adapter, profile):
    """Test identical paragraphs in one request share a single slot."""
    response = await service.translate_batch(batch([TEXTS[0], TEXTS[0]], profile))

    assert len(paragraphs_in_prompt(fake_adapter.prompts[0])) == 1
    assert response.results[0].result.words == response.results[1].result.words


@pytest.mark.asyncio
async def test_local_skips(service, fake_adapter, profile):
    """Test blank and Chinese paragraphs never reach the model."""
    response = await service.translate_batch(batch(["   ", "这是一段已经是中文的文字。", TEXTS[0]], profile))

    assert [r.status for r in response.results] == [
        ParagraphStatus.SKIPPED, ParagraphStatus.SKIPPED, ParagraphStatus.TRANSLATED
    ]
    assert len(paragraphs_in_prompt(fake_adapter.prompts[0])) == 1


@pytest.mark.asyncio
async def test_all_skipped_makes_no_call(fake_adapter, cache, profile, no_sleep):
    """Test easy paragraphs are filtered with the frequency lists."""
    frequency = FrequencyManager()
    frequency.add_words("common", ["the", "cat", "sat", "on", "mat"])
    service = BatchTranslationService(fake_adapter, cache=cache, frequency=frequency, sleep=no_sleep)

    response = await service.translate_batch(batch(["The cat sat on the mat."], profile))

    assert response.api_call_count == 0
    assert response.results[0].status == ParagraphStatus.SKIPPED
    assert fake_adapter.call_count == 0


@pytest.mark.asyncio
async def test_parse_failure_leaves_cache_untouched(cache, profile, no_sleep):
    """Test a malformed response fails the batch without retry or caching."""
    adapter = FakeAdapter(script=["Sorry, I cannot do that."])
    service = BatchTranslationService(adapter, cache=cache, sleep=no_sleep)

    with pytest.raises(ParseFailure):
        await service.translate_batch(batch(TEXTS, profile))

    assert adapter.call_count == 1
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_transient_failure_retried(cache, profile, no_sleep):
    """Test a 5xx is retried and the batch still succeeds."""
    adapter = FakeAdapter(script=[ServerError("fake", "bad gateway", 502)])
    service = BatchTranslationService(adapter, cache=cache, sleep=no_sleep)

    response = await service.translate_batch(batch(TEXTS, profile))

    assert adapter.call_count == 2
    assert len(no_sleep.delays) == 1
    assert response.api_call_count == 1
    assert len(cache) == 3


@pytest.mark.asyncio
async def test_missing_paragraph_not_cached(cache, profile, no_sleep):
    """Test a paragraph the model dropped stays retryable."""
    partial = json.dumps({"paragraphs": [{"id": "0", "fullText": "委员会进行了长时间的审议。"}]}, ensure_ascii=False)
    adapter = FakeAdapter(script=[partial])
    service = BatchTranslationService(adapter, cache=cache, sleep=no_sleep)

    response = await service.translate_batch(batch(TEXTS[:2], profile))

    assert response.results[0].result.full_text
    assert response.results[1].result.is_empty
    assert len(cache) == 1

    await service.translate_batch(batch(TEXTS[:2], profile))
    assert [t for _, t in paragraphs_in_prompt(adapter.prompts[1])] == [TEXTS[1]]


@pytest.mark.asyncio
async def test_superseded_batch_not_written_back(service, cache, profile):
    """Test results of a stale batch are returned but not cached."""
    response = await service.translate_batch(batch(TEXTS, profile), is_current=lambda: False)

    assert all(r.status == ParagraphStatus.TRANSLATED for r in response.results)
    assert len(cache) == 0
    assert service.get_stats()["discarded_writes"] == 1


@pytest.mark.asyncio
async def test_force_refresh_merges_into_cache(cache, profile, no_sleep):
    """Test a refresh bypasses the cache read and merges with the old entry."""
    refreshed = json.dumps({"paragraphs": [{"id": "0", "words": [
        {"original": "deliberated", "translation": "审议", "difficulty": 7}
    ]}]}, ensure_ascii=False)
    adapter = FakeAdapter(script=[refreshed])
    service = BatchTranslationService(adapter, cache=cache, sleep=no_sleep)
    key = fingerprint(TEXTS[0], TranslationMode.INLINE_ONLY)

    # Seed the cache through a normal translation first
    seed = BatchTranslationService(FakeAdapter(), cache=cache, sleep=no_sleep)
    await seed.translate_batch(batch(TEXTS[:1], profile))
    assert [w.original for w in cache.peek(key).words] == ["committee"]

    response = await service.translate_batch(batch(TEXTS[:1], profile, force_refresh=True))

    assert response.api_call_count == 1
    assert response.cache_hit_count == 0
    words = {w.original for w in response.results[0].result.words}
    assert words == {"committee", "deliberated"}
    assert {w.original for w in cache.peek(key).words} == {"committee", "deliberated"}


@pytest.mark.asyncio
async def test_scheduler_splits_and_translates(fake_adapter, cache, profile, no_sleep):
    """Test 20 long paragraphs go out as two concurrent batches."""
    service = BatchTranslationService(fake_adapter, cache=cache, sleep=no_sleep)
    texts = [f"Paragraph {i} discusses photosynthesis extensively. " + "x" * 550 for i in range(20)]

    results = await service.translate_paragraphs(requests_for(texts), profile)

    assert fake_adapter.call_count == 2
    assert [r.id for r in results] == [f"p{i}" for i in range(20)]
    assert all(r.status == ParagraphStatus.TRANSLATED for r in results)
    assert sorted(len(paragraphs_in_prompt(p)) for p in fake_adapter.prompts) == [5, 15]


@pytest.mark.asyncio
async def test_scheduler_reports_failed_batch(cache, profile, no_sleep):
    """Test an upstream failure surfaces as untranslated paragraphs, not an exception."""
    def refuse(prompt):
        raise ClientError("fake", "unauthorized", 401)

    service = BatchTranslationService(FakeAdapter(responder=refuse), cache=cache, sleep=no_sleep)

    results = await service.translate_paragraphs(requests_for(TEXTS), profile)

    assert all(r.status == ParagraphStatus.UNTRANSLATED for r in results)
    assert isinstance(results[0].error, BatchFailure)
    assert isinstance(results[0].error.cause, ClientError)
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_cancelled_cycle_discards_in_flight_results(fake_adapter, cache, profile, no_sleep):
    """Test a batch in flight during cancellation does not write back."""
    fake_adapter.gate = asyncio.Event()
    service = BatchTranslationService(fake_adapter, cache=cache, sleep=no_sleep)
    scheduler = service.create_scheduler(profile)

    futures = scheduler.submit(requests_for(TEXTS))
    scheduler.flush()
    for _ in range(10):
        if fake_adapter.prompts:
            break
        await asyncio.sleep(0)
    assert fake_adapter.call_count == 1

    scheduler.cancel_pending()
    fake_adapter.gate.set()
    await scheduler.drain()

    assert all(f.cancelled() for f in futures)
    assert len(cache) == 0
    assert service.get_stats()["discarded_writes"] == 1


@pytest.mark.asyncio
async def test_quick_translate(cache, no_sleep):
    """Test single-word lookups use plain-text mode."""
    adapter = FakeAdapter(script=["  意外发现 \n"])
    service = BatchTranslationService(adapter, cache=cache, sleep=no_sleep)

    assert await service.quick_translate("serendipity") == "意外发现"
    assert adapter.json_modes == [False]
    assert adapter.prompts[0].endswith("serendipity")


def test_invalid_config_rejected(fake_adapter):
    """Test bad tunables fail at construction."""
    with pytest.raises(ValueError):
        BatchTranslationService(fake_adapter, config=BatchConfig(max_paragraphs_per_batch=0))


def test_stats_include_cache(service):
    """Test service statistics embed the cache statistics."""
    stats = service.get_stats()

    assert stats["api_calls"] == 0
    assert stats["cache"]["size"] == 0
