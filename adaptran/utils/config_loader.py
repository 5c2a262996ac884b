"""Configuration loading and management."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

from dotenv import load_dotenv

from adaptran.core.exceptions import ConfigurationError

DEFAULT_CONFIG_PATHS = [
    Path("configs/default.yaml"),
    Path.home() / ".adaptran" / "config.yaml",
]


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Values missing from the file are filled from the defaults. API keys are
    overridden by environment variables (a ``.env`` file is honoured).

    Args:
        config_path: Path to config file (defaults to configs/default.yaml,
            then ~/.adaptran/config.yaml)

    Returns:
        Configuration dictionary
    """
    load_dotenv()

    if config_path is None:
        for path in DEFAULT_CONFIG_PATHS:
            if path.exists():
                config_path = str(path)
                break
        else:
            return override_with_env(get_default_config())

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    config = _deep_merge(get_default_config(), loaded)

    # Override with environment variables
    config = override_with_env(config)

    return config


def save_config(config: Dict[str, Any], config_path: str) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration dictionary
        config_path: Output path
    """
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


def override_with_env(config: Dict[str, Any]) -> Dict[str, Any]:
    """Override config with environment variables."""
    env_mappings = {
        "OPENAI_API_KEY": ["api_keys", "openai"],
        "ANTHROPIC_API_KEY": ["api_keys", "anthropic"],
        "GEMINI_API_KEY": ["api_keys", "gemini"],
        "ADAPTRAN_LOG_LEVEL": ["logging", "level"],
    }

    for env_var, path in env_mappings.items():
        value = os.getenv(env_var)
        if value:
            current = config
            for key in path[:-1]:
                if key not in current or current[key] is None:
                    current[key] = {}
                current = current[key]
            current[path[-1]] = value

    return config


def get_api_key(config: Dict[str, Any], provider: str) -> Optional[str]:
    """API key for a provider, falling back to the translation section."""
    key = (config.get("api_keys") or {}).get(provider)
    return key or (config.get("translation") or {}).get("api_key") or None


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        "translation": {
            "provider": "openai",
            "model": None,
            "base_url": None,
            "target_language": "Chinese",
            "mode": "inline-only",
            "blacklist": []
        },
        "batch": {
            "max_paragraphs_per_batch": 15,
            "max_chars_per_batch": 10000,
            "debounce_delay": 0.3,
            "max_cache_entries": 500,
            "cache_expire_time": 7 * 24 * 60 * 60
        },
        "storage": {
            "directory": str(Path.home() / ".adaptran" / "store"),
            "persistent": True
        },
        "logging": {
            "level": "INFO",
            "file": None
        },
        "api_keys": {
            "openai": "",
            "anthropic": "",
            "gemini": ""
        }
    }


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
