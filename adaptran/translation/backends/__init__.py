"""Upstream adapter implementations."""

from typing import Optional

from adaptran.core.exceptions import ConfigurationError
from ..base import UpstreamAdapter
from .openai_backend import OpenAIBackend
from .anthropic_backend import AnthropicBackend
from .gemini_backend import GeminiBackend
from .ollama_backend import OllamaBackend

BACKENDS = {
    "openai": OpenAIBackend,
    "custom": OpenAIBackend,
    "anthropic": AnthropicBackend,
    "gemini": GeminiBackend,
    "ollama": OllamaBackend,
}


def create_backend(
    provider: str,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    base_url: Optional[str] = None
) -> UpstreamAdapter:
    """
    Instantiate the adapter for a provider.

    ``custom`` is any OpenAI-compatible endpoint and requires ``base_url``.

    Raises:
        ConfigurationError: Unknown provider or missing base_url
    """
    provider = (provider or "").lower()
    backend_cls = BACKENDS.get(provider)
    if backend_cls is None:
        raise ConfigurationError(
            f"Unknown provider: {provider}",
            config_key="provider",
            invalid_value=provider,
            valid_values=sorted(BACKENDS)
        )
    if provider == "custom" and not base_url:
        raise ConfigurationError("Custom provider requires base_url", config_key="base_url")

    return backend_cls(api_key=api_key, model=model, base_url=base_url)


__all__ = [
    'OpenAIBackend',
    'AnthropicBackend',
    'GeminiBackend',
    'OllamaBackend',
    'create_backend'
]
