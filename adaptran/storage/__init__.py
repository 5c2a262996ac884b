"""Persistent key-value storage and learner data management."""

from .store import KeyValueStore, MemoryStore, DiskStore
from .manager import StorageManager, UserSettings

__all__ = [
    'KeyValueStore',
    'MemoryStore',
    'DiskStore',
    'StorageManager',
    'UserSettings'
]
