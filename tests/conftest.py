# tests/conftest.py
"""
Shared pytest fixtures for poem-router tests.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator

import pytest
import pytest_asyncio

from poem_router.config import AppConfig, RateLimitConfig
from poem_router.constants import FREE_MODEL_FALLBACKS
from poem_router.orchestrator import FallbackOrchestrator
from poem_router.providers.base import BaseProvider
from poem_router.providers.registry import ProviderRegistry
from poem_router.selector import ProviderSelector
from poem_router.state.memory import InMemoryCounterStore

FREE_PRIMARY, FREE_SECOND, FREE_THIRD = FREE_MODEL_FALLBACKS

_ENV_VARS = (
    "OPENROUTER_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_GENERATIVE_AI_API_KEY",
    "GOOGLE_GENAI_API_KEY",
    "GOOGLE_AI_API_KEY",
    "AI_MODEL",
    "SITE_URL",
    "POEM_LANGUAGE",
    "POEM_ROUTER_REDIS_URL",
    "REDIS_URL",
    "POEM_ROUTER_RATE_PER_MINUTE",
    "POEM_ROUTER_RATE_PER_HOUR",
    "POEM_ROUTER_RATE_PER_DAY",
    "POEM_ROUTER_LOG_LEVEL",
    "POEM_ROUTER_LOG_JSON",
)


class StatusError(Exception):
    """Stand-in for an SDK error carrying an HTTP status."""

    def __init__(self, status_code: int, message: str = "upstream error") -> None:
        super().__init__(message)
        self.status_code = status_code


HANG = object()
"""Script entry that blocks forever (until cancelled)."""


class ScriptedProvider(BaseProvider):
    """
    In-memory provider whose behaviour per model is scripted.

    A script is a list of chunks to yield; an exception in the list is
    raised at that point, and HANG blocks. A bare exception instead of a
    list is raised when the stream is opened.
    """

    def __init__(self, name: str, scripts: dict[str, Any] | None = None) -> None:
        super().__init__(name=name)
        self.scripts = scripts or {}
        self.calls: list[str] = []
        self.closed: list[str] = []

    async def stream(  # type: ignore[override]
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
    ) -> AsyncIterator[str]:
        self.calls.append(model)
        try:
            script = self.scripts.get(model, [f"poem from {model}"])
            if isinstance(script, BaseException):
                raise script
            for item in script:
                if item is HANG:
                    await asyncio.Event().wait()
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed.append(model)


class FakeClock:
    """Settable replacement for time.time."""

    def __init__(self, now: float = 1_700_000_040.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clean_env(monkeypatch):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture
def clock():
    # 1_700_000_040 is an exact minute boundary
    return FakeClock()


@pytest_asyncio.fixture
async def memory_store(clock):
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def rate_limits():
    return RateLimitConfig(per_minute=3, per_hour=10, per_day=20)


@pytest.fixture
def app_config():
    return AppConfig(openrouter_api_key="sk-or-test", model="gemini-2.0-flash-free")


@pytest.fixture
def make_orchestrator():
    """
    Build an orchestrator over scripted providers.

    Returns (orchestrator, openrouter_provider, gemini_provider_or_None).
    Passing ``backup_scripts`` registers the direct Gemini backup.
    """

    def _make(
        scripts: dict[str, Any] | None = None,
        backup_scripts: dict[str, Any] | None = None,
        model: str = "gemini-2.0-flash-free",
        on_attempt: Any = None,
    ) -> tuple[FallbackOrchestrator, ScriptedProvider, ScriptedProvider | None]:
        registry = ProviderRegistry()
        openrouter = ScriptedProvider("openrouter", scripts)
        registry.register_adapter(openrouter)
        backup = None
        if backup_scripts is not None:
            backup = ScriptedProvider("gemini", backup_scripts)
            registry.register_adapter(backup)
        selector = ProviderSelector(model=model, backup_available=backup is not None)
        orchestrator = FallbackOrchestrator(registry, selector, on_attempt=on_attempt)
        return orchestrator, openrouter, backup

    return _make
