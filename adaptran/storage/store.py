"""
Key-value store capability.

The cache and the profile manager only depend on ``get_many`` /
``set_many`` / ``remove``. Implementations raise ``StorageFailure`` on I/O
errors; callers decide whether that is fatal (it never is in this package).
"""

import copy
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

import diskcache

from adaptran.core.exceptions import StorageFailure

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract persistent store addressed by string keys."""

    @abstractmethod
    def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Return the stored values for the keys that exist."""
        pass

    @abstractmethod
    def set_many(self, mapping: Mapping[str, Any]) -> None:
        """Store every key/value pair."""
        pass

    @abstractmethod
    def remove(self, keys: Iterable[str]) -> None:
        """Delete keys; missing keys are ignored."""
        pass

    def get(self, key: str, default: Any = None) -> Any:
        return self.get_many([key]).get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})


class MemoryStore(KeyValueStore):
    """In-process store. Values are deep-copied so callers cannot alias them."""

    def __init__(self, initial: Mapping[str, Any] = None):
        self._data: Dict[str, Any] = copy.deepcopy(dict(initial or {}))

    def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {k: copy.deepcopy(self._data[k]) for k in keys if k in self._data}

    def set_many(self, mapping: Mapping[str, Any]) -> None:
        for key, value in mapping.items():
            self._data[key] = copy.deepcopy(value)

    def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class DiskStore(KeyValueStore):
    """Persistent store backed by ``diskcache``."""

    def __init__(self, directory: str = ".cache/adaptran"):
        self.directory = Path(directory).expanduser()
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._cache = diskcache.Cache(str(self.directory))
            logger.debug(f"Using disk store at {self.directory}")
        except Exception as e:
            raise StorageFailure(f"Failed to open disk store: {e}", operation="init") from e

    def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        keys = list(keys)
        try:
            result = {}
            for key in keys:
                value = self._cache.get(key, default=None)
                if value is not None:
                    result[key] = value
            return result
        except Exception as e:
            raise StorageFailure(f"Disk store read failed: {e}", operation="get", keys=keys) from e

    def set_many(self, mapping: Mapping[str, Any]) -> None:
        try:
            with self._cache.transact():
                for key, value in mapping.items():
                    self._cache.set(key, value)
        except Exception as e:
            raise StorageFailure(f"Disk store write failed: {e}", operation="set", keys=list(mapping)) from e

    def remove(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        try:
            for key in keys:
                self._cache.delete(key)
        except Exception as e:
            raise StorageFailure(f"Disk store delete failed: {e}", operation="remove", keys=keys) from e

    def close(self) -> None:
        self._cache.close()
