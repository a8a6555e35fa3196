"""Model invocation for study material generation."""

from __future__ import annotations

import logging
import time
from typing import Optional

import openai
from openai import OpenAI

from .config import GENERATION_POLICY, Settings
from .errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)


class ModelInvoker:
    """One chat-completion call per ``invoke``; no caching and no retries.

    Built from explicit settings and handed to whoever needs it, so concurrent
    requests never share hidden client state.
    """

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        self.settings = settings
        self._client = client

    def _validate(self) -> None:
        if not self.settings.api_key:
            raise ConfigurationError("API key configuration error: OPENAI_API_KEY is not set")
        if not self.settings.model:
            raise ConfigurationError("Model configuration error: OPENAI_MODEL is not set")
        if not self.settings.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"API base URL must be an http(s) URL, got {self.settings.base_url!r}"
            )

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._validate()
            self._client = OpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.request_timeout,
                max_retries=0,
            )
        return self._client

    def invoke(self, prompt: str, temperature: float, max_tokens: int) -> str:
        self._validate()
        started = time.time()
        try:
            response = self.client.chat.completions.create(
                model=self.settings.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise ConfigurationError(f"Provider rejected the API credentials: {exc}") from exc
        except openai.APIError as exc:
            raise TransportError(f"Model request failed: {exc}") from exc

        text = response.choices[0].message.content if response.choices else None
        logger.debug(
            "Model %s answered in %.1fs (%d chars)",
            self.settings.model,
            time.time() - started,
            len(text or ""),
        )
        if not text:
            raise TransportError("Model returned an empty completion")
        return text

    def invoke_for(self, operation: str, prompt: str) -> str:
        temperature, max_tokens = GENERATION_POLICY[operation]
        return self.invoke(prompt, temperature, max_tokens)
