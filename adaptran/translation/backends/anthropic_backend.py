"""Anthropic Claude upstream adapter."""

import os
import logging
from typing import Optional

from anthropic import AsyncAnthropic, APIConnectionError, APIStatusError

from adaptran.core.exceptions import classify_status, NetworkFailure
from ..base import UpstreamAdapter, DEFAULT_TEMPERATURE

logger = logging.getLogger(__name__)

JSON_SUFFIX = "\n\nPlease respond with valid JSON only."


class AnthropicBackend(UpstreamAdapter):
    """Anthropic messages API."""

    provider = "anthropic"
    default_model = "claude-3-5-haiku-latest"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0
    ):
        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        super().__init__(api_key, model, timeout)

        if self.api_key:
            client_kwargs = {"api_key": self.api_key, "timeout": timeout, "max_retries": 0}
            if base_url:
                # The SDK appends /v1 itself
                base_url = base_url.rstrip("/")
                if base_url.endswith("/v1"):
                    base_url = base_url[:-3]
                client_kwargs["base_url"] = base_url
                logger.info(f"Using custom Anthropic API endpoint: {base_url}")
            self.async_client = AsyncAnthropic(**client_kwargs)
        else:
            self.async_client = None
        self.base_url = base_url

    async def send(self, prompt: str, json_mode: bool = True) -> str:
        """Send one message and return the first text block."""
        if not self.async_client:
            raise classify_status(self.provider, 401, "Anthropic API key not configured")

        try:
            response = await self.async_client.messages.create(
                model=self.model,
                max_tokens=8192 if json_mode else 100,
                temperature=DEFAULT_TEMPERATURE,
                messages=[{"role": "user", "content": prompt + JSON_SUFFIX if json_mode else prompt}],
            )
        except APIStatusError as e:
            raise classify_status(self.provider, e.status_code, e.message, e)
        except APIConnectionError as e:
            raise NetworkFailure(self.provider, str(e), original_error=e)
        except Exception as e:
            raise self._wrap_error(e)

        content = None
        for block in response.content or []:
            if getattr(block, "type", None) == "text":
                content = block.text
                break
        return self._require_content(self.provider, content)
