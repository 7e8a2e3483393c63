# poem_router/providers/registry.py
"""
ProviderRegistry — container for the provider adapters of one app.

The registry is the single source of truth for which providers are
available. The orchestrator looks up the adapter named by each candidate.
Adapters are created lazily so a missing credential only fails the
requests that actually need it.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from .base import BaseProvider
from ..config import AppConfig
from ..constants import PROVIDER_GEMINI, PROVIDER_OPENROUTER
from ..exceptions import ConfigurationError


class ProviderRegistry:
    """Holds all registered provider adapters."""

    def __init__(self) -> None:
        self._providers: dict[str, BaseProvider] = {}
        self._factories: dict[str, Callable[[], BaseProvider]] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: AppConfig) -> "ProviderRegistry":
        """Register the OpenRouter adapter and, if keyed, the Gemini backup."""
        registry = cls()

        def _openrouter() -> BaseProvider:
            if not config.openrouter_api_key:
                raise ConfigurationError(
                    "OPENROUTER_API_KEY not found. Please add it to your .env file. "
                    "Get your free API key at https://openrouter.ai/keys"
                )
            from .openrouter import OpenRouterProvider

            return OpenRouterProvider(
                api_key=config.openrouter_api_key,
                site_url=config.site_url,
                app_title=config.app_title,
                timeout=config.request_timeout,
            )

        registry.register_factory(PROVIDER_OPENROUTER, _openrouter)

        if config.gemini_api_key:

            def _gemini() -> BaseProvider:
                from .gemini import GeminiProvider

                return GeminiProvider(api_key=config.gemini_api_key, timeout=config.request_timeout)

            registry.register_factory(PROVIDER_GEMINI, _gemini)

        return registry

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_factory(self, name: str, factory: Callable[[], BaseProvider]) -> None:
        """Register a zero-argument callable that builds the adapter on first use."""
        self._factories[name] = factory

    def register_adapter(self, adapter: BaseProvider) -> None:
        """Register a pre-built provider adapter directly."""
        self._providers[adapter.name] = adapter

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    async def get(self, name: str) -> BaseProvider:
        """Return the adapter for *name*, building it if needed."""
        async with self._lock:
            provider = self._providers.get(name)
            if provider is not None:
                return provider
            factory = self._factories.get(name)
            if factory is None:
                raise ConfigurationError(f"No provider registered under '{name}'.")
            provider = factory()
            self._providers[name] = provider
            return provider

    def names(self) -> list[str]:
        """Return names of all registered providers."""
        return sorted(set(self._providers) | set(self._factories))

    async def close_all(self) -> None:
        """Call close() on every built provider (releases HTTP connections, etc.)."""
        async with self._lock:
            for provider in self._providers.values():
                await provider.close()
            self._providers.clear()
