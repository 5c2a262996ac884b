"""Utility functions and helpers."""

from .logger import setup_logger, get_logger
from .cache import TranslationCache
from .config_loader import load_config, save_config
from .retry import RetryOptions, execute

__all__ = [
    'setup_logger',
    'get_logger',
    'TranslationCache',
    'load_config',
    'save_config',
    'RetryOptions',
    'execute'
]
