"""
Base upstream adapter interface.
All language model providers must inherit from UpstreamAdapter.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, Optional

from adaptran.core.exceptions import NetworkFailure, UpstreamError, classify_status

SYSTEM_PROMPT = "You are an English learning assistant. Always respond with valid JSON."

# Sampling temperature for structured annotation output
DEFAULT_TEMPERATURE = 0.3


class UpstreamAdapter(ABC):
    """Abstract base class for language model providers."""

    provider = "base"
    default_model: Optional[str] = None

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, timeout: float = 60.0):
        self.api_key = api_key
        self.model = model or self.default_model
        self.timeout = timeout
        self.name = self.__class__.__name__

    @abstractmethod
    async def send(self, prompt: str, json_mode: bool = True) -> str:
        """
        Perform one chat completion.

        Args:
            prompt: Fully rendered prompt
            json_mode: Ask the provider for a JSON object response

        Returns:
            Raw text content of the model response

        Raises:
            UpstreamError: Classified by HTTP status (NetworkFailure when
                no response was received)
        """
        pass

    def is_available(self) -> bool:
        """Check if backend is available and configured."""
        return self.api_key is not None

    def get_info(self) -> Dict:
        """Get backend information."""
        return {
            "name": self.name,
            "provider": self.provider,
            "model": self.model,
            "available": self.is_available()
        }

    def _wrap_error(self, error: BaseException) -> UpstreamError:
        """Map an arbitrary client exception onto the upstream error hierarchy."""
        if isinstance(error, UpstreamError):
            return error
        if isinstance(error, (asyncio.TimeoutError, ConnectionError, OSError)):
            return NetworkFailure(self.provider, f"{type(error).__name__}: {error}", original_error=error)
        status = getattr(error, "status_code", None)
        if not isinstance(status, int):
            status = None
        return classify_status(self.provider, status, str(error) or type(error).__name__, error)

    @staticmethod
    def _require_content(provider: str, content: Optional[str]) -> str:
        if not content:
            raise NetworkFailure(provider, "Empty response from model")
        return content
