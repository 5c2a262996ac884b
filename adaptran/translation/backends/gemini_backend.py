"""Google Gemini upstream adapter over the REST API."""

import os
import asyncio
import logging
from typing import Optional

import aiohttp

from adaptran.core.exceptions import classify_status, NetworkFailure
from ..base import UpstreamAdapter, SYSTEM_PROMPT, DEFAULT_TEMPERATURE

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiBackend(UpstreamAdapter):
    """Gemini ``generateContent`` endpoint via aiohttp."""

    provider = "gemini"
    default_model = "gemini-2.0-flash"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0
    ):
        api_key = api_key or os.getenv("GEMINI_API_KEY")
        super().__init__(api_key, model, timeout)
        self.base_url = (base_url or GEMINI_BASE_URL).rstrip("/")

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def send(self, prompt: str, json_mode: bool = True) -> str:
        """POST one generateContent request and return the first candidate's text."""
        if not self.api_key:
            raise classify_status(self.provider, 401, "Gemini API key not configured")

        generation_config = {"temperature": DEFAULT_TEMPERATURE}
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
            text = f"{SYSTEM_PROMPT}\n\n{prompt}"
        else:
            generation_config["maxOutputTokens"] = 100
            text = prompt

        payload = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": generation_config,
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.endpoint,
                    params={"key": self.api_key},
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as resp:
                    if resp.status != 200:
                        message = await self._error_message(resp)
                        raise classify_status(self.provider, resp.status, message)
                    data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkFailure(self.provider, f"{type(e).__name__}: {e}", original_error=e)

        try:
            content = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            content = None
        return self._require_content(self.provider, content)

    @staticmethod
    async def _error_message(resp: "aiohttp.ClientResponse") -> str:
        try:
            data = await resp.json(content_type=None)
            return data.get("error", {}).get("message") or f"HTTP {resp.status}"
        except (aiohttp.ContentTypeError, ValueError, AttributeError):
            return f"HTTP {resp.status}"
