"""Ollama local model upstream adapter."""

import logging
from typing import Optional

import ollama

from adaptran.core.exceptions import classify_status
from ..base import UpstreamAdapter, SYSTEM_PROMPT, DEFAULT_TEMPERATURE

logger = logging.getLogger(__name__)


class OllamaBackend(UpstreamAdapter):
    """Ollama chat endpoint. No API key needed."""

    provider = "ollama"
    default_model = "llama3.1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 120.0
    ):
        super().__init__(api_key, model, timeout)
        self.base_url = base_url
        self.client = ollama.AsyncClient(host=base_url, timeout=timeout)

    async def send(self, prompt: str, json_mode: bool = True) -> str:
        """Send one chat request to the local Ollama server."""
        options = {"temperature": DEFAULT_TEMPERATURE}
        if not json_mode:
            options["num_predict"] = 100

        try:
            response = await self.client.chat(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                format="json" if json_mode else "",
                options=options,
            )
        except ollama.ResponseError as e:
            raise classify_status(
                self.provider,
                e.status_code if e.status_code and e.status_code > 0 else None,
                f"{e.error}. Make sure model '{self.model}' is installed.",
                e
            )
        except Exception as e:
            raise self._wrap_error(e)

        content = response["message"]["content"] if response else None
        return self._require_content(self.provider, content)

    def is_available(self) -> bool:
        """Local server needs no credentials."""
        return True
