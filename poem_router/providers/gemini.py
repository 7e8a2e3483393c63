# poem_router/providers/gemini.py
"""
Google Gemini provider adapter.

Wraps google-generativeai's async streaming API. Used as the direct backup
when every free OpenRouter model is busy; it bills against our own Gemini
quota through a separate credential.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Callable

import google.generativeai as genai
from google.generativeai.types import GenerationConfig

from .base import BaseProvider
from ..constants import PROVIDER_GEMINI, REQUEST_TIMEOUT_SECONDS


def _chunk_text(chunk: Any) -> str:
    """Concatenate the text parts of a streamed chunk; safety stops carry none."""
    texts: list[str] = []
    for candidate in getattr(chunk, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            text = getattr(part, "text", "")
            if text:
                texts.append(text)
    return "".join(texts)


class GeminiProvider(BaseProvider):
    """Adapter wrapping google.generativeai.GenerativeModel."""

    def __init__(
        self,
        api_key: str | None = None,
        name: str = PROVIDER_GEMINI,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        model_factory: Callable[[str], Any] | None = None,
    ) -> None:
        super().__init__(name=name)
        self._timeout = timeout

        if model_factory is not None:
            self._model_factory = model_factory
        else:
            genai.configure(api_key=api_key)
            self._model_factory = genai.GenerativeModel

    async def stream(  # type: ignore[override]
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
    ) -> AsyncIterator[str]:
        generative_model = self._model_factory(model)
        response = await generative_model.generate_content_async(
            [{"role": "user", "parts": [prompt]}],
            generation_config=GenerationConfig(temperature=temperature),
            stream=True,
            # retry=None turns off google-api-core's automatic retries
            request_options={"retry": None, "timeout": self._timeout},
        )
        async for chunk in response:
            text = _chunk_text(chunk)
            if text:
                yield text
