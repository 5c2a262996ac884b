"""Paragraph translation cache with expiry, LRU eviction and versioned storage."""

import copy
import logging
import time
from collections import OrderedDict
from typing import Optional, Dict, Any, List, Iterable, Tuple, Callable

from adaptran.core.models import BatchConfig, CacheEntry, TranslationResult, TranslationMode
from adaptran.storage.store import KeyValueStore

logger = logging.getLogger(__name__)

# Bump when the stored entry layout changes; older entries are dropped.
CACHE_VERSION = 1
PARAGRAPH_CACHE_KEY = "paragraphCache"


class TranslationCache:
    """
    Cache for paragraph translation results with graceful fallback.

    Entries live in memory and are written through to an optional
    key-value store under a single namespaced key. Store failures are
    logged and the cache keeps working in memory.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        config: Optional[BatchConfig] = None,
        clock: Callable[[], float] = time.time,
        version: int = CACHE_VERSION
    ):
        """
        Initialize cache.

        Args:
            store: Persistent store (None keeps the cache in memory only)
            config: Capacity and expiry settings
            clock: Time source in seconds
            version: Schema version of stored entries
        """
        self.store = store
        self.config = config or BatchConfig()
        self.clock = clock
        self.version = version
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._initialized = False
        self._cache_errors: List[str] = []
        self._hits = 0
        self._misses = 0

    @property
    def max_entries(self) -> int:
        return self.config.max_cache_entries

    @property
    def expire_time(self) -> float:
        return self.config.cache_expire_time

    def initialize(self) -> None:
        """Load stored entries once; expired and foreign-version entries are skipped."""
        if self._initialized:
            return
        self._initialized = True

        if self.store is None:
            return

        try:
            data = self.store.get(PARAGRAPH_CACHE_KEY)
        except Exception as e:
            self._record_error(f"Cache load failed: {e}")
            return

        if not data:
            return

        if not isinstance(data, dict) or not isinstance(data.get("entries") or {}, dict):
            self._record_error(f"Malformed stored cache ({type(data).__name__}), starting empty")
            self._discard_stored()
            return

        if not self.migrate(data.get("version"), self.version):
            return

        now = self.clock()
        loaded: List[CacheEntry] = []
        for raw in (data.get("entries") or {}).values():
            try:
                entry = CacheEntry.from_dict(raw, self.version)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed cache entry: {e}")
                continue
            if entry.version != self.version or entry.is_expired(now, self.expire_time):
                continue
            loaded.append(entry)

        # Oldest access first so the LRU end is correct
        loaded.sort(key=lambda e: e.last_accessed_at or e.stored_at)
        for entry in loaded[-self.max_entries:]:
            self._entries[entry.fingerprint] = entry

        logger.info(f"Loaded {len(self._entries)} cached paragraphs")

    def migrate(self, old_version: Optional[int], new_version: int) -> bool:
        """
        Reconcile stored data with the current schema.

        Entries from another version are dropped rather than reinterpreted.

        Args:
            old_version: Version found in storage
            new_version: Current schema version

        Returns:
            True if stored entries can be used as-is
        """
        if old_version == new_version:
            return True

        logger.info(f"Cache version mismatch ({old_version} -> {new_version}), dropping stored entries")
        self._discard_stored()
        return False

    def _discard_stored(self) -> None:
        self._entries.clear()
        if self.store is not None:
            try:
                self.store.remove([PARAGRAPH_CACHE_KEY])
            except Exception as e:
                self._record_error(f"Cache cleanup failed: {e}")

    def get(self, key: str) -> Optional[TranslationResult]:
        """
        Get a cached result.

        Args:
            key: Paragraph fingerprint

        Returns:
            Copy of the result flagged ``cached=True``, or None if missing or
            expired (never raises)
        """
        self.initialize()

        entry = self._live_entry(key)
        if entry is None:
            self._misses += 1
            return None

        entry.last_accessed_at = self.clock()
        self._entries.move_to_end(key)
        self._hits += 1

        result = copy.deepcopy(entry.result)
        result.cached = True
        return result

    def peek(self, key: str) -> Optional[TranslationResult]:
        """Like ``get`` but without touching recency or statistics."""
        self.initialize()
        entry = self._live_entry(key)
        return copy.deepcopy(entry.result) if entry else None

    def get_batch(self, keys: Iterable[str]) -> Tuple[Dict[str, TranslationResult], List[str]]:
        """
        Look up several keys at once.

        Returns:
            (hits by key, keys that missed)
        """
        hits: Dict[str, TranslationResult] = {}
        misses: List[str] = []
        for key in keys:
            if key in hits:
                continue
            result = self.get(key)
            if result is None:
                misses.append(key)
            else:
                hits[key] = result

        logger.debug(f"Cache batch lookup: {len(hits)} hits, {len(misses)} misses")
        return hits, misses

    def put(
        self,
        key: str,
        result: TranslationResult,
        mode: TranslationMode = TranslationMode.INLINE_ONLY,
        page_url: str = ""
    ) -> None:
        """
        Cache a result, evicting the least recently used entries over capacity.

        Note:
            Never raises - store errors are logged but non-fatal
        """
        self.initialize()
        self._insert(key, result, mode, page_url)
        self._evict()
        self._persist()

    def put_batch(self, entries: Iterable[Tuple[str, TranslationResult, TranslationMode, str]]) -> None:
        """Cache several results with a single store write."""
        self.initialize()
        count = 0
        for key, result, mode, page_url in entries:
            self._insert(key, result, mode, page_url)
            count += 1
        self._evict()
        self._persist()
        logger.debug(f"Cached {count} paragraphs")

    def clean_expired(self) -> int:
        """Remove expired entries and return how many were removed."""
        self.initialize()
        now = self.clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now, self.expire_time)]
        for key in expired:
            del self._entries[key]
        if expired:
            self._persist()
            logger.info(f"Removed {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> None:
        """Clear all cache."""
        self._entries.clear()
        self._initialized = True
        self._hits = 0
        self._misses = 0
        if self.store is not None:
            try:
                self.store.remove([PARAGRAPH_CACHE_KEY])
            except Exception as e:
                self._record_error(f"Cache clear failed: {e}")

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        self.initialize()
        total = self._hits + self._misses
        stored = [e.stored_at for e in self._entries.values()]
        stats: Dict[str, Any] = {
            "type": "memory" if self.store is None else type(self.store).__name__,
            "size": len(self._entries),
            "max_size": self.max_entries,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{(self._hits / total if total else 0):.1%}",
            "oldest_entry": min(stored) if stored else None,
            "newest_entry": max(stored) if stored else None,
            "errors": len(self._cache_errors),
        }
        if self._cache_errors:
            stats["recent_errors"] = self._cache_errors[-5:]  # Last 5 errors
        return stats

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self.clock(), self.expire_time):
            # Lazy eviction
            del self._entries[key]
            return None
        return entry

    def _insert(self, key: str, result: TranslationResult, mode: TranslationMode, page_url: str) -> None:
        now = self.clock()
        stored = copy.deepcopy(result)
        stored.cached = False
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(
            fingerprint=key,
            result=stored,
            stored_at=now,
            version=self.version,
            mode=mode.value if isinstance(mode, TranslationMode) else str(mode),
            page_url=page_url,
            last_accessed_at=now,
        )

    def _evict(self) -> None:
        if len(self._entries) <= self.max_entries:
            return

        now = self.clock()
        for key in [k for k, e in self._entries.items() if e.is_expired(now, self.expire_time)]:
            del self._entries[key]

        evicted = 0
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            evicted += 1
        if evicted:
            logger.debug(f"Evicted {evicted} least recently used cache entries")

    def _persist(self) -> None:
        if self.store is None:
            return
        payload = {
            "version": self.version,
            "entries": {key: entry.to_dict() for key, entry in self._entries.items()},
        }
        try:
            self.store.set(PARAGRAPH_CACHE_KEY, payload)
        except Exception as e:
            self._record_error(f"Cache persist failed: {e}")

    def _record_error(self, error_msg: str) -> None:
        self._cache_errors.append(error_msg)
        logger.warning(f"{error_msg}. Continuing with in-memory cache.")
