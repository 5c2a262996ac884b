"""Unit tests for the paragraph translation cache."""

import pytest

from adaptran.core.exceptions import StorageFailure
from adaptran.core.models import BatchConfig, TranslatedWord, TranslationMode, TranslationResult
from adaptran.storage.store import MemoryStore
from adaptran.utils.cache import CACHE_VERSION, PARAGRAPH_CACHE_KEY, TranslationCache


def make_result(word="ubiquitous", translation="无处不在的"):
    return TranslationResult(words=[TranslatedWord(original=word, translation=translation, difficulty=7)])


class FailingStore(MemoryStore):
    """Store whose every operation fails."""

    def get_many(self, keys):
        raise StorageFailure("quota exceeded", operation="get")

    def set_many(self, mapping):
        raise StorageFailure("quota exceeded", operation="set")

    def remove(self, keys):
        raise StorageFailure("quota exceeded", operation="remove")


def test_put_then_get_marks_cached(cache):
    """Test a stored result comes back flagged as cached."""
    cache.put("k1", make_result())

    result = cache.get("k1")

    assert result is not None
    assert result.cached is True
    assert result.words[0].translation == "无处不在的"


def test_get_missing_returns_none(cache):
    """Test missing keys are misses, not errors."""
    assert cache.get("nope") is None
    assert cache.get_stats()["misses"] == 1


def test_get_returns_copy(cache):
    """Test callers cannot mutate the stored entry."""
    cache.put("k1", make_result())
    first = cache.get("k1")
    first.words.clear()

    assert len(cache.get("k1").words) == 1


def test_expired_entry_is_lazily_removed(cache, clock, batch_config):
    """Test an entry older than the expiry time is treated as absent."""
    cache.put("k1", make_result())
    clock.advance(batch_config.cache_expire_time + 1)

    assert cache.get("k1") is None
    assert len(cache) == 0


def test_entry_at_expiry_boundary_still_valid(cache, clock, batch_config):
    """Test expiry is strictly after the configured age."""
    cache.put("k1", make_result())
    clock.advance(batch_config.cache_expire_time)

    assert cache.get("k1") is not None


def test_lru_eviction(memory_store, clock):
    """Test the least recently accessed entry is evicted over capacity."""
    cache = TranslationCache(memory_store, BatchConfig(max_cache_entries=2), clock=clock)
    cache.put("a", make_result("a"))
    clock.advance(1)
    cache.put("b", make_result("b"))
    clock.advance(1)
    cache.get("a")  # "b" is now least recently used
    clock.advance(1)
    cache.put("c", make_result("c"))

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache
    assert len(cache) == 2


def test_put_batch_single_write(memory_store, clock):
    """Test several entries persist under the namespaced key."""
    cache = TranslationCache(memory_store, clock=clock)
    cache.put_batch([
        ("k1", make_result("one"), TranslationMode.INLINE_ONLY, "https://example.com"),
        ("k2", make_result("two"), TranslationMode.BILINGUAL, ""),
    ])

    stored = memory_store.get(PARAGRAPH_CACHE_KEY)
    assert stored["version"] == CACHE_VERSION
    assert set(stored["entries"]) == {"k1", "k2"}
    assert stored["entries"]["k1"]["pageUrl"] == "https://example.com"
    assert stored["entries"]["k2"]["mode"] == "bilingual"


def test_reload_from_store(memory_store, clock):
    """Test a new cache instance sees entries written by an earlier one."""
    TranslationCache(memory_store, clock=clock).put("k1", make_result())

    reloaded = TranslationCache(memory_store, clock=clock)

    assert reloaded.get("k1").words[0].original == "ubiquitous"


def test_reload_skips_expired(memory_store, clock):
    """Test expired entries are not loaded."""
    config = BatchConfig(cache_expire_time=10)
    TranslationCache(memory_store, config, clock=clock).put("k1", make_result())
    clock.advance(11)

    reloaded = TranslationCache(memory_store, config, clock=clock)

    assert len(reloaded) == 0


def test_version_mismatch_drops_entries(memory_store, clock):
    """Test entries from another schema version are discarded."""
    TranslationCache(memory_store, clock=clock, version=1).put("k1", make_result())

    upgraded = TranslationCache(memory_store, clock=clock, version=2)

    assert upgraded.get("k1") is None
    assert memory_store.get(PARAGRAPH_CACHE_KEY) is None


def test_migrate_same_version():
    """Test matching versions keep stored entries."""
    assert TranslationCache().migrate(1, 1) is True
    assert TranslationCache().migrate(None, 1) is False


def test_store_failures_are_not_fatal(clock):
    """Test the cache keeps working in memory when the store fails."""
    cache = TranslationCache(FailingStore(), clock=clock)

    cache.put("k1", make_result())

    assert cache.get("k1") is not None
    stats = cache.get_stats()
    assert stats["errors"] >= 2
    assert "recent_errors" in stats


def test_peek_does_not_count(cache):
    """Test peek leaves statistics alone."""
    cache.put("k1", make_result())

    assert cache.peek("k1") is not None
    assert cache.peek("k1").cached is False
    stats = cache.get_stats()
    assert stats["hits"] == 0
    assert stats["misses"] == 0


def test_get_batch_splits_hits_and_misses(cache):
    """Test batch lookup."""
    cache.put("k1", make_result())

    hits, misses = cache.get_batch(["k1", "k2", "k1"])

    assert list(hits) == ["k1"]
    assert misses == ["k2"]


def test_clean_expired(cache, clock):
    """Test explicit cleanup of expired entries."""
    cache.put("old", make_result())
    clock.advance(cache.expire_time + 1)
    cache.put("new", make_result())

    assert cache.clean_expired() == 1
    assert "new" in cache


def test_clear(cache, memory_store):
    """Test clear empties memory and store."""
    cache.put("k1", make_result())

    cache.clear()

    assert len(cache) == 0
    assert memory_store.get(PARAGRAPH_CACHE_KEY) is None


def test_stats(cache, clock):
    """Test statistics shape."""
    cache.put("k1", make_result())
    cache.get("k1")
    cache.get("k2")

    stats = cache.get_stats()

    assert stats["type"] == "MemoryStore"
    assert stats["size"] == 1
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == "50.0%"
    assert stats["oldest_entry"] == pytest.approx(clock())


def test_capacity_evicts_earliest_stored(memory_store, clock):
    """Test one insert past capacity evicts the oldest entry."""
    cache = TranslationCache(memory_store, BatchConfig(max_cache_entries=3), clock=clock)
    for key in ["k0", "k1", "k2", "k3"]:
        cache.put(key, make_result(key))
        clock.advance(1)

    assert len(cache) == 3
    assert "k0" not in cache
    assert all(k in cache for k in ["k1", "k2", "k3"])


@pytest.mark.parametrize("payload", [
    "garbage",
    ["k1"],
    {"version": CACHE_VERSION, "entries": ["k1"]},
    {"version": CACHE_VERSION, "entries": {"k1": "not an entry"}},
])
def test_malformed_stored_payload_is_a_cold_cache(clock, payload):
    """Test unreadable stored data is treated as empty instead of raising."""
    store = MemoryStore({PARAGRAPH_CACHE_KEY: payload})
    cache = TranslationCache(store, clock=clock)

    assert cache.get("k1") is None

    cache.put("k2", make_result())
    assert cache.get("k2") is not None
    assert set(store.get(PARAGRAPH_CACHE_KEY)["entries"]) == {"k2"}


def test_malformed_stored_payload_is_reported(clock):
    """Test a non-dict payload is recorded as an error and dropped from the store."""
    store = MemoryStore({PARAGRAPH_CACHE_KEY: "garbage"})
    cache = TranslationCache(store, clock=clock)

    cache.get("k1")

    assert cache.get_stats()["errors"] == 1
    assert store.get(PARAGRAPH_CACHE_KEY) is None
