"""Text generation provider interface and implementations."""

from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod

from koloni.config import DEFAULT_BACKEND_TIMEOUT_S

logger = logging.getLogger(__name__)


def resolve_api_key(explicit: str | None, *env_names: str) -> str:
    """Return the explicit key if given, else the first non-empty env var."""
    if explicit and explicit.strip():
        return explicit.strip()
    for name in env_names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return ""


class TextProvider(ABC):
    """Base interface for AI text generation backends."""

    provider_name: str = "base"

    @abstractmethod
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> str:
        ...

    def timed_generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> tuple[str, float]:
        start = time.time()
        text = self.generate(system_prompt, user_prompt, temperature, max_tokens)
        elapsed = time.time() - start
        return text, elapsed


class OpenAIProvider(TextProvider):
    """OpenAI chat completions provider."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4",
        timeout: float = DEFAULT_BACKEND_TIMEOUT_S,
    ) -> None:
        self.api_key = resolve_api_key(api_key, "OPENAI_API_KEY")
        self.model = model
        self.timeout = timeout
        self._client = None
        if not self.api_key:
            raise ValueError("OpenAI API key is required. Set OPENAI_API_KEY or pass api_key.")

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI

            # Retries are left to the caller.
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> str:
        client = self._get_client()
        logger.info("Generating text via OpenAI model=%s", self.model)

        response = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )

        if not response.choices or not response.choices[0].message.content:
            raise RuntimeError("OpenAI returned an empty completion.")
        return response.choices[0].message.content


class GeminiProvider(TextProvider):
    """Google Gemini text provider."""

    provider_name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gemini-2.0-flash",
        timeout: float = DEFAULT_BACKEND_TIMEOUT_S,
    ) -> None:
        self.api_key = resolve_api_key(api_key, "GEMINI_API_KEY", "GOOGLE_API_KEY")
        self.model = model
        self.timeout = timeout
        self._client = None
        if not self.api_key:
            raise ValueError(
                "Gemini API key is required. Set GEMINI_API_KEY or GOOGLE_API_KEY or pass api_key."
            )

    def _get_client(self):
        if self._client is None:
            from google import genai
            from google.genai import types

            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        return self._client

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> str:
        client = self._get_client()
        logger.info("Generating text via Gemini model=%s", self.model)

        response = client.models.generate_content(
            model=self.model,
            contents=user_prompt,
            config={
                "system_instruction": system_prompt,
                "temperature": temperature,
                "max_output_tokens": max_tokens,
            },
        )

        text = (response.text or "").strip()
        if not text:
            raise RuntimeError("Gemini returned no text; the prompt may have been filtered.")
        return text


def get_provider(name: str, **kwargs) -> TextProvider:
    """Factory function to get a provider by name."""
    providers: dict[str, type[TextProvider]] = {
        "openai": OpenAIProvider,
        "gemini": GeminiProvider,
    }
    if name not in providers:
        raise ValueError(f"Unknown provider: {name}. Available: {list(providers.keys())}")
    return providers[name](**kwargs)
