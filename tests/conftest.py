"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from adaptran.core.models import BatchConfig, ExamType, UserProfile
from adaptran.storage.store import MemoryStore
from adaptran.utils.cache import TranslationCache
from tests.fixtures.fakes import FakeAdapter, FakeClock, SleepRecorder


@pytest.fixture
def clock():
    """Fake clock starting at a fixed timestamp."""
    return FakeClock()


@pytest.fixture
def memory_store():
    """Empty in-memory key-value store."""
    return MemoryStore()


@pytest.fixture
def batch_config():
    """Default batch configuration."""
    return BatchConfig()


@pytest.fixture
def cache(memory_store, batch_config, clock):
    """Translation cache over the memory store with a fake clock."""
    return TranslationCache(memory_store, batch_config, clock=clock)


@pytest.fixture
def fake_adapter():
    """Adapter answering every batch prompt with one annotated word per paragraph."""
    return FakeAdapter()


@pytest.fixture
def no_sleep():
    """Sleep recorder for retry tests."""
    return SleepRecorder()


@pytest.fixture
def profile():
    """CET-6 learner profile."""
    return UserProfile(exam_type=ExamType.CET6, exam_score=None, estimated_vocabulary=6000)
