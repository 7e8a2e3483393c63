# poem_router/selector.py
"""
ProviderSelector — decides which upstream models a request may use.

Free models are throttled aggressively upstream, so a free primary gets a
fallback chain of the other free models (and optionally a direct Gemini
backup). A paid primary is tried alone to keep billing predictable.
"""

from __future__ import annotations

from .constants import (
    AVAILABLE_MODELS,
    DEFAULT_MODEL_KEY,
    DIRECT_GEMINI_MODEL,
    FREE_MODEL_FALLBACKS,
    PROVIDER_GEMINI,
    PROVIDER_OPENROUTER,
)
from .models import ModelCandidate, Tier


def resolve_model_id(key: str | None) -> str:
    """
    Map a catalogue alias to its upstream identifier.

    Raw identifiers already present in the catalogue pass through. Anything
    else resolves to the default free model.
    """
    if key:
        if key in AVAILABLE_MODELS:
            return AVAILABLE_MODELS[key]
        if key in AVAILABLE_MODELS.values() or key in FREE_MODEL_FALLBACKS:
            return key
    return AVAILABLE_MODELS[DEFAULT_MODEL_KEY]


def is_free_model(model_id: str, free_models: tuple[str, ...] = FREE_MODEL_FALLBACKS) -> bool:
    """Every identifier is either in the free list or paid."""
    return model_id in free_models


def tier_of(model_id: str, free_models: tuple[str, ...] = FREE_MODEL_FALLBACKS) -> Tier:
    return "free" if is_free_model(model_id, free_models) else "paid"


class ProviderSelector:
    """
    Builds the ordered candidate list for one request.

    Parameters
    ----------
    model:
        Primary model alias or identifier.
    backup_available:
        True when a direct backup credential is configured.
    free_models:
        Free fallback chain, in the order it is tried.
    """

    def __init__(
        self,
        model: str | None = None,
        backup_available: bool = False,
        free_models: tuple[str, ...] = FREE_MODEL_FALLBACKS,
        backup_model: str = DIRECT_GEMINI_MODEL,
    ) -> None:
        self.primary = resolve_model_id(model)
        self.backup_available = backup_available
        self._free_models = free_models
        self._backup_model = backup_model

    @property
    def uses_free_model(self) -> bool:
        return is_free_model(self.primary, self._free_models)

    def candidates(self) -> list[ModelCandidate]:
        """Return a fresh candidate list: primary first, then fallbacks, then backup."""
        if not self.uses_free_model:
            return [
                ModelCandidate(
                    model=self.primary,
                    position=0,
                    tier=tier_of(self.primary, self._free_models),
                    provider=PROVIDER_OPENROUTER,
                )
            ]

        ordered = [self.primary] + [m for m in self._free_models if m != self.primary]
        chain = [
            ModelCandidate(
                model=model_id,
                position=i,
                tier=tier_of(model_id, self._free_models),
                provider=PROVIDER_OPENROUTER,
            )
            for i, model_id in enumerate(ordered)
        ]
        if self.backup_available:
            chain.append(
                ModelCandidate(
                    model=self._backup_model,
                    position=len(chain),
                    tier="direct-backup",
                    provider=PROVIDER_GEMINI,
                )
            )
        return chain
