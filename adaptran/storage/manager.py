"""
Learner profile and settings persistence.

Profile scalars, word lists and settings are kept under separate keys so
the large word lists can be written without touching the rest. Storage
failures are logged and the manager falls back to its in-memory copy.
"""

import copy
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from adaptran.core.exceptions import ConfigurationError, StorageFailure
from adaptran.core.models import TranslationMode, UnknownWordEntry, UserProfile
from adaptran.storage.store import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)

PROFILE_KEY = "userProfile"
KNOWN_WORDS_KEY = "knownWords"
UNKNOWN_WORDS_KEY = "unknownWords"
SETTINGS_KEY = "settings"

PROVIDERS = ["openai", "anthropic", "gemini", "ollama", "custom"]


@dataclass
class UserSettings:
    """Learner-facing settings."""
    enabled: bool = True
    translation_mode: TranslationMode = TranslationMode.INLINE_ONLY
    show_difficulty: bool = True
    provider: str = "openai"
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    target_language: str = "Chinese"
    blacklist: List[str] = field(default_factory=list)

    def validate(self) -> List[str]:
        """Validate settings and return any issues."""
        issues = []
        if self.provider not in PROVIDERS:
            issues.append(f"Unknown provider: {self.provider}")
        if self.provider == "custom" and not self.base_url:
            issues.append("Custom provider requires base_url")
        return issues

    def is_blacklisted(self, url: str) -> bool:
        """True if the URL's host is a blacklisted domain or one of its subdomains."""
        if not url or not self.blacklist:
            return False
        host = (urlparse(url).hostname or "").lower()
        if not host:
            return False
        for domain in self.blacklist:
            domain = domain.lower().strip().lstrip(".")
            if domain and (host == domain or host.endswith("." + domain)):
                return True
        return False

    def to_dict(self, include_secrets: bool = True) -> Dict[str, Any]:
        data = {
            "enabled": self.enabled,
            "translation_mode": self.translation_mode.value,
            "show_difficulty": self.show_difficulty,
            "provider": self.provider,
            "model": self.model,
            "base_url": self.base_url,
            "target_language": self.target_language,
            "blacklist": list(self.blacklist),
        }
        if include_secrets:
            data["api_key"] = self.api_key
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "UserSettings":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}

        mode = kwargs.get("translation_mode")
        if mode is not None and not isinstance(mode, TranslationMode):
            try:
                kwargs["translation_mode"] = TranslationMode(mode)
            except ValueError:
                raise ConfigurationError(
                    f"Invalid translation mode: {mode}",
                    config_key="translation_mode",
                    invalid_value=mode,
                    valid_values=[m.value for m in TranslationMode]
                )
        if "blacklist" in kwargs:
            kwargs["blacklist"] = list(kwargs["blacklist"] or [])
        return cls(**kwargs)


class StorageManager:
    """Loads and saves the learner profile and settings through a KeyValueStore."""

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store or MemoryStore()
        self._profile: Optional[UserProfile] = None
        self._settings: Optional[UserSettings] = None

    def get_user_profile(self) -> UserProfile:
        """Stored profile, or the default profile if nothing is stored."""
        try:
            data = self.store.get_many([PROFILE_KEY, KNOWN_WORDS_KEY, UNKNOWN_WORDS_KEY])
        except StorageFailure as e:
            logger.warning(f"Profile load failed, using in-memory profile: {e.message}")
            return copy.deepcopy(self._profile or UserProfile())

        if PROFILE_KEY not in data:
            return copy.deepcopy(self._profile or UserProfile())

        known = data.get(KNOWN_WORDS_KEY) or []
        unknown = data.get(UNKNOWN_WORDS_KEY) or []
        if (
            not isinstance(data[PROFILE_KEY], dict)
            or not isinstance(known, list)
            or not isinstance(unknown, list)
            or not all(isinstance(e, dict) for e in unknown)
        ):
            logger.warning("Stored profile is malformed, using in-memory profile")
            return copy.deepcopy(self._profile or UserProfile())

        profile_data = dict(data[PROFILE_KEY])
        profile_data["knownWords"] = known
        profile_data["unknownWords"] = unknown
        try:
            profile = UserProfile.from_dict(profile_data)
        except (TypeError, ValueError) as e:
            logger.warning(f"Stored profile is malformed, using in-memory profile: {e}")
            return copy.deepcopy(self._profile or UserProfile())
        self._profile = copy.deepcopy(profile)
        return profile

    def save_user_profile(self, profile: UserProfile) -> None:
        self._profile = copy.deepcopy(profile)
        data = profile.to_dict()
        try:
            self.store.set_many({
                PROFILE_KEY: {k: v for k, v in data.items() if k not in ("knownWords", "unknownWords")},
                KNOWN_WORDS_KEY: data["knownWords"],
                UNKNOWN_WORDS_KEY: data["unknownWords"],
            })
        except StorageFailure as e:
            logger.warning(f"Profile save failed, keeping changes in memory: {e.message}")

    def add_known_word(self, word: str) -> UserProfile:
        """Mark a word known and drop any unknown entry for it."""
        profile = self.get_user_profile()
        lower = word.lower()
        profile.known_words.add(lower)
        profile.unknown_words = [e for e in profile.unknown_words if e.word.lower() != lower]
        self.save_user_profile(profile)
        return profile

    def add_unknown_word(self, entry: UnknownWordEntry) -> UserProfile:
        """Add or replace an unknown entry and drop the word from the known set."""
        profile = self.get_user_profile()
        lower = entry.word.lower()
        profile.unknown_words = [e for e in profile.unknown_words if e.word.lower() != lower]
        stored = copy.copy(entry)
        stored.word = lower
        profile.unknown_words.append(stored)
        profile.known_words.discard(lower)
        self.save_user_profile(profile)
        return profile

    def remove_from_vocabulary(self, word: str) -> UserProfile:
        """Stop tracking an unknown word."""
        profile = self.get_user_profile()
        lower = word.lower()
        profile.unknown_words = [e for e in profile.unknown_words if e.word.lower() != lower]
        self.save_user_profile(profile)
        return profile

    def get_settings(self) -> UserSettings:
        try:
            data = self.store.get(SETTINGS_KEY)
        except StorageFailure as e:
            logger.warning(f"Settings load failed, using in-memory settings: {e.message}")
            data = None

        if data is None:
            return copy.deepcopy(self._settings or UserSettings())

        settings = UserSettings.from_dict(data)
        self._settings = copy.deepcopy(settings)
        return settings

    def save_settings(self, settings: UserSettings) -> None:
        self._settings = copy.deepcopy(settings)
        try:
            self.store.set(SETTINGS_KEY, settings.to_dict())
        except StorageFailure as e:
            logger.warning(f"Settings save failed, keeping changes in memory: {e.message}")

    def export_data(self) -> Dict[str, Any]:
        """Profile and settings as plain data. API keys are not exported."""
        return {
            "profile": self.get_user_profile().to_dict(),
            "settings": self.get_settings().to_dict(include_secrets=False),
        }

    def import_data(self, data: Dict[str, Any]) -> None:
        """Overlay exported data onto the current profile and settings."""
        if data.get("profile"):
            current = self.get_user_profile().to_dict()
            current.update(data["profile"])
            self.save_user_profile(UserProfile.from_dict(current))

        if data.get("settings"):
            current = self.get_settings().to_dict()
            current.update(data["settings"])
            self.save_settings(UserSettings.from_dict(current))

        logger.info("Imported profile and settings")
