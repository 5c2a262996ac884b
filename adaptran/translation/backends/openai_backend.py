"""OpenAI (and OpenAI-compatible) upstream adapter."""

import os
import logging
from typing import Optional

from openai import AsyncOpenAI, APIConnectionError, APIStatusError

from adaptran.core.exceptions import classify_status, NetworkFailure
from ..base import UpstreamAdapter, SYSTEM_PROMPT, DEFAULT_TEMPERATURE

logger = logging.getLogger(__name__)


class OpenAIBackend(UpstreamAdapter):
    """OpenAI chat completions, also used for any compatible endpoint via ``base_url``."""

    provider = "openai"
    default_model = "gpt-4o-mini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0
    ):
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        super().__init__(api_key, model, timeout)
        self.base_url = base_url

        if self.api_key:
            client_kwargs = {"api_key": self.api_key, "timeout": timeout, "max_retries": 0}
            if base_url:
                client_kwargs["base_url"] = base_url
                logger.info(f"Using custom OpenAI-compatible endpoint: {base_url}")
            self.async_client = AsyncOpenAI(**client_kwargs)
        else:
            self.async_client = None

    async def send(self, prompt: str, json_mode: bool = True) -> str:
        """Send one chat completion and return the message content."""
        if not self.async_client:
            raise classify_status(self.provider, 401, "OpenAI API key not configured")

        kwargs = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": DEFAULT_TEMPERATURE,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        else:
            kwargs["max_tokens"] = 100

        try:
            response = await self.async_client.chat.completions.create(**kwargs)
        except APIStatusError as e:
            raise classify_status(self.provider, e.status_code, e.message, e)
        except APIConnectionError as e:
            raise NetworkFailure(self.provider, str(e), original_error=e)
        except Exception as e:
            raise self._wrap_error(e)

        content = response.choices[0].message.content if response.choices else None
        return self._require_content(self.provider, content)
