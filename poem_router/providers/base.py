# poem_router/providers/base.py
"""
BaseProvider — abstract contract every provider adapter must implement.

An adapter wraps a provider SDK client and exposes a uniform streaming
interface to the orchestrator. The orchestrator never calls provider SDKs
directly; it always goes through an adapter.

This design means:
  - Adapters build their clients with transport retries disabled, so the
    orchestrator is the only place that decides to try again.
  - SDK exceptions are raised unchanged; classification (429 vs 404 vs
    anything else) happens in one place, exceptions.classify_failure().
  - Adding a new provider requires only implementing this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


class BaseProvider(ABC):
    """
    Abstract base class for all LLM provider adapters.

    Attributes
    ----------
    name:
        Registry identifier, e.g. "openrouter", "gemini".
    """

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    def stream(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
    ) -> AsyncIterator[str]:
        """
        Send a streaming generation request.

        Implementations are async generators: the upstream call is opened on
        the first ``__anext__()``, non-empty text chunks are yielded as they
        arrive, and the upstream response is released when the generator is
        closed (exhausted, failed, cancelled or ``aclose()``-d).

        Raises
        ------
        Any exception from the underlying SDK.
        """

    async def close(self) -> None:
        """Release any resources held by this adapter (HTTP clients, etc.)."""

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(name={self.name!r})"
