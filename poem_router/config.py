# poem_router/config.py
"""
AppConfig and related sub-configs.

Supports construction from:
  - Python dict   → AppConfig.from_dict(data)
  - YAML file     → AppConfig.from_yaml("poem-router.yaml")
  - Environment   → AppConfig.from_env()
"""

from __future__ import annotations

import os
import re
from typing import Any, Callable

from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_APP_TITLE,
    DEFAULT_LANGUAGE,
    DEFAULT_MODEL_KEY,
    DEFAULT_SITE_URL,
    DEFAULT_TEMPERATURE,
    RATE_PER_DAY,
    RATE_PER_HOUR,
    RATE_PER_MINUTE,
    REQUEST_TIMEOUT_SECONDS,
)

_GEMINI_KEY_VARS = (
    "GEMINI_API_KEY",
    "GOOGLE_GENERATIVE_AI_API_KEY",
    "GOOGLE_GENAI_API_KEY",
    "GOOGLE_AI_API_KEY",
)

_TRUTHY = frozenset({"1", "true", "yes", "on"})


class RateLimitConfig(BaseModel):
    """Request ceilings per client identity."""

    per_minute: int = Field(default=RATE_PER_MINUTE, gt=0)
    per_hour: int = Field(default=RATE_PER_HOUR, gt=0)
    per_day: int = Field(default=RATE_PER_DAY, gt=0)

    def ceiling(self, granularity: str) -> int:
        return getattr(self, f"per_{granularity}")


class AppConfig(BaseModel):
    """
    Top-level configuration for poem-router.

    Instantiate directly or use one of the factory class methods:
      AppConfig.from_dict(data)
      AppConfig.from_yaml(path)
      AppConfig.from_env()
    """

    model_config = {"arbitrary_types_allowed": True}

    openrouter_api_key: str | None = Field(
        default=None,
        description="Credential for the OpenRouter aggregator.",
    )
    gemini_api_key: str | None = Field(
        default=None,
        description="Credential for the direct Gemini backup. Enables the backup candidate.",
    )
    model: str = Field(
        default=DEFAULT_MODEL_KEY,
        description="Primary model: a catalogue alias or a raw upstream identifier.",
    )
    site_url: str = Field(default=DEFAULT_SITE_URL)
    app_title: str = Field(default=DEFAULT_APP_TITLE)
    default_language: str = Field(default=DEFAULT_LANGUAGE)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    request_timeout: float = Field(default=REQUEST_TIMEOUT_SECONDS, gt=0)
    redis_url: str | None = Field(
        default=None,
        description="Redis connection URL for the shared rate-limit counters. Unset disables rate limiting.",
    )
    rate_limits: RateLimitConfig = Field(default_factory=RateLimitConfig)
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    on_attempt: Callable | None = Field(
        default=None,
        description="Optional async callback fired after every candidate attempt. Receives an AttemptEvent.",
        exclude=True,
    )

    @property
    def has_backup(self) -> bool:
        return bool(self.gemini_api_key)

    # ------------------------------------------------------------------
    # Factory methods
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> "AppConfig":
        """Build config from a plain Python dictionary."""
        merged = {**data, **kwargs}
        return cls.model_validate(merged)

    @classmethod
    def from_yaml(cls, path: str, **kwargs: Any) -> "AppConfig":
        """
        Build config from a YAML file.

        Environment variable interpolation is supported:
          openrouter_api_key: "${OPENROUTER_API_KEY}"
        """
        import yaml

        with open(path) as f:
            raw = f.read()

        # Interpolate ${ENV_VAR} placeholders
        def _replace(match: re.Match) -> str:  # type: ignore[type-arg]
            var = match.group(1)
            value = os.environ.get(var)
            if value is None:
                raise EnvironmentError(
                    f"Environment variable '{var}' referenced in '{path}' is not set."
                )
            return value

        raw = re.sub(r"\$\{([^}]+)\}", _replace, raw)
        data = yaml.safe_load(raw) or {}
        return cls.from_dict(data, **kwargs)

    @classmethod
    def from_env(cls, **kwargs: Any) -> "AppConfig":
        """
        Build config from environment variables.

          OPENROUTER_API_KEY        → openrouter_api_key
          GEMINI_API_KEY            → gemini_api_key (also GOOGLE_GENERATIVE_AI_API_KEY,
                                      GOOGLE_GENAI_API_KEY, GOOGLE_AI_API_KEY)
          AI_MODEL                  → model
          SITE_URL                  → site_url
          POEM_LANGUAGE             → default_language
          POEM_ROUTER_REDIS_URL     → redis_url (falls back to REDIS_URL)
          POEM_ROUTER_RATE_PER_MINUTE / _HOUR / _DAY → rate_limits
          POEM_ROUTER_LOG_LEVEL     → log_level
          POEM_ROUTER_LOG_JSON      → log_json
        """
        env = os.environ
        data: dict[str, Any] = {}

        if env.get("OPENROUTER_API_KEY"):
            data["openrouter_api_key"] = env["OPENROUTER_API_KEY"]

        for var in _GEMINI_KEY_VARS:
            if env.get(var):
                data["gemini_api_key"] = env[var]
                break

        for var, field in (
            ("AI_MODEL", "model"),
            ("SITE_URL", "site_url"),
            ("POEM_LANGUAGE", "default_language"),
            ("POEM_ROUTER_LOG_LEVEL", "log_level"),
        ):
            if env.get(var):
                data[field] = env[var]

        redis_url = env.get("POEM_ROUTER_REDIS_URL") or env.get("REDIS_URL")
        if redis_url:
            data["redis_url"] = redis_url

        limits: dict[str, int] = {}
        for granularity in ("minute", "hour", "day"):
            value = env.get(f"POEM_ROUTER_RATE_PER_{granularity.upper()}")
            if value:
                limits[f"per_{granularity}"] = int(value)
        if limits:
            data["rate_limits"] = limits

        log_json = env.get("POEM_ROUTER_LOG_JSON")
        if log_json:
            data["log_json"] = log_json.strip().lower() in _TRUTHY

        data.update(kwargs)
        return cls.from_dict(data)
