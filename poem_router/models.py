# poem_router/models.py
"""
Data models used throughout poem-router.

Pydantic v2 models describe everything that crosses a boundary (inbound
requests, candidates, rate-limit decisions, attempt events). The
generation result is a plain dataclass because it carries a live stream.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .constants import DEFAULT_FRIENDLINESS, DEFAULT_NUM_LINES, DEFAULT_TEMPERATURE
from .exceptions import InvalidPoemRequest

Tier = Literal["free", "paid", "direct-backup"]
Granularity = Literal["minute", "hour", "day"]


class ModelCandidate(BaseModel):
    """One upstream model eligible for an attempt within a request."""

    model_config = ConfigDict(frozen=True)

    model: str = Field(..., description="Upstream model identifier.")
    position: int = Field(..., ge=0, description="Order in the fallback sequence.")
    tier: Tier
    provider: str = Field(..., description="Registry name of the provider adapter.")

    @property
    def is_backup(self) -> bool:
        return self.tier == "direct-backup"

    @property
    def label(self) -> str:
        """Value reported to clients as the model that served the request."""
        if self.is_backup:
            return f"direct-{self.provider}"
        return self.model


class GenerationRequest(BaseModel):
    """Prompt handed to the orchestrator. Transport retries are never enabled."""

    prompt: str = Field(..., min_length=1)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)


class PoemRequest(BaseModel):
    """
    Inbound form payload for ``POST /api/generate-poem``.

    Field names follow the JSON contract (camelCase) through aliases.
    """

    model_config = ConfigDict(populate_by_name=True)

    recipient_name: str = Field(default="", alias="recipientName")
    recipient_facts: str | None = Field(default=None, alias="recipientFacts")
    num_lines: int = Field(default=DEFAULT_NUM_LINES, ge=2, le=64, alias="numLines")
    is_classic: bool = Field(default=True, alias="isClassic")
    friendliness: float = Field(default=DEFAULT_FRIENDLINESS, ge=0, le=100)
    is_humanize: bool = Field(default=False, alias="isHumanize")
    author_age: str | None = Field(default=None, alias="authorAge")
    author_gender: str | None = Field(default=None, alias="authorGender")
    poem_language: str | None = Field(default=None, alias="poemLanguage")

    @field_validator("recipient_name", mode="before")
    @classmethod
    def validate_recipient_name(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            raise ValueError("Naam ontvanger is verplicht")
        return str(v).strip()

    @field_validator("recipient_facts", "author_gender", "poem_language", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> str | None:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("author_age", mode="before")
    @classmethod
    def coerce_age(cls, v: Any) -> str | None:
        # The form sends the age as a string; numbers are accepted too.
        if v is None or isinstance(v, bool):
            return None
        text = str(v).strip()
        return text or None

    @model_validator(mode="after")
    def validate_humanize(self) -> "PoemRequest":
        if self.is_humanize:
            if not self.author_age:
                raise ValueError("Leeftijd schrijver is verplicht bij Humanize modus")
            if not self.author_gender:
                raise ValueError("Geslacht schrijver is verplicht bij Humanize modus")
        return self

    @classmethod
    def from_payload(cls, data: Any) -> "PoemRequest":
        """Validate a decoded JSON body, raising InvalidPoemRequest on failure."""
        if not isinstance(data, dict):
            raise InvalidPoemRequest("Ongeldige aanvraag")
        # A missing name is reported with the same message as an empty one.
        data = {"recipientName": None, **data}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidPoemRequest(_first_error_message(exc)) from exc


def _first_error_message(exc: ValidationError) -> str:
    error = exc.errors()[0]
    ctx_error = (error.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    field = ".".join(str(part) for part in error.get("loc", ()))
    return f"Ongeldige invoer: {field}" if field else "Ongeldige invoer"


class QuotaWindows(BaseModel):
    """One integer per rate-limit granularity."""

    minute: int
    hour: int
    day: int

    def get(self, granularity: Granularity) -> int:
        return getattr(self, granularity)


class RateLimitDecision(BaseModel):
    """Outcome of a rate-limit check for one identity."""

    allowed: bool
    remaining: QuotaWindows
    reset_in: QuotaWindows = Field(description="Seconds until each bucket rolls over.")

    @property
    def exhausted_granularity(self) -> Granularity | None:
        """The smallest window whose quota is used up, if any."""
        for granularity in ("minute", "hour", "day"):
            if self.remaining.get(granularity) <= 0:
                return granularity  # type: ignore[return-value]
        return None

    @property
    def retry_after(self) -> int:
        """Seconds until the exhausted window resets (minute window if none)."""
        return self.reset_in.get(self.exhausted_granularity or "minute")


class AttemptEvent(BaseModel):
    """
    Fired after every candidate attempt via the optional on_attempt callback.
    Forward it to any logging or monitoring system.
    """

    candidate: str
    tier: Tier
    outcome: Literal["success", "retryable", "fatal"]
    fallback_depth: int = Field(description="Candidates that failed before this attempt.")
    error_kind: str | None = None
    error: str | None = None
    timestamp: float = Field(default_factory=time.time)


@dataclass
class GenerationResult:
    """
    A successful generation.

    ``stream`` yields the first chunk (already received from upstream)
    followed by the rest of the upstream output.
    """

    stream: AsyncIterator[str]
    model_used: str
    fallback_count: int = 0
    fallback_reason: str | None = None

    @property
    def fallback_used(self) -> bool:
        return self.fallback_count > 0

    async def text(self) -> str:
        """Drain the stream into a single string."""
        return "".join([chunk async for chunk in self.stream])
