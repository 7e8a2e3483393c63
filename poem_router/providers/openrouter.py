# poem_router/providers/openrouter.py
"""
OpenRouter provider adapter.

OpenRouter is OpenAI-compatible, so this wraps an openai.AsyncOpenAI client
pointed at the OpenRouter base URL. One adapter serves every catalogue
model; the model is chosen per call.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx
import openai

from .base import BaseProvider
from ..constants import (
    DEFAULT_APP_TITLE,
    DEFAULT_SITE_URL,
    OPENROUTER_BASE_URL,
    PROVIDER_OPENROUTER,
    REQUEST_TIMEOUT_SECONDS,
)


class OpenRouterProvider(BaseProvider):
    """Adapter wrapping openai.AsyncOpenAI against the OpenRouter API."""

    def __init__(
        self,
        api_key: str | None = None,
        name: str = PROVIDER_OPENROUTER,
        base_url: str = OPENROUTER_BASE_URL,
        site_url: str = DEFAULT_SITE_URL,
        app_title: str = DEFAULT_APP_TITLE,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        client: Any = None,  # pre-configured AsyncOpenAI
    ) -> None:
        super().__init__(name=name)

        if client is not None:
            self._client = client
            self._owns_client = False
        else:
            self._client = openai.AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                max_retries=0,
                timeout=timeout,
                default_headers={
                    "HTTP-Referer": site_url,
                    "X-Title": app_title,
                },
                http_client=httpx.AsyncClient(
                    limits=httpx.Limits(max_connections=100, max_keepalive_connections=20)
                ),
            )
            self._owns_client = True

    async def stream(  # type: ignore[override]
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
    ) -> AsyncIterator[str]:
        response = await self._client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            stream=True,
        )
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        finally:
            await response.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()
