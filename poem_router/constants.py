# poem_router/constants.py
"""
Default constants for poem-router.
All tunable values are centralised here so they can be overridden via AppConfig
without touching internal logic.
"""

# ---------------------------------------------------------------------------
# Upstream endpoints
# ---------------------------------------------------------------------------
OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
DEFAULT_SITE_URL: str = "https://www.sinterklaas-poem.nl"
DEFAULT_APP_TITLE: str = "Sinterklaas Gedichten Generator"

REQUEST_TIMEOUT_SECONDS: float = 30.0
"""Transport timeout per upstream call. Matches the hosting wall-clock ceiling."""

DEFAULT_TEMPERATURE: float = 0.8

# ---------------------------------------------------------------------------
# Model catalogue
# ---------------------------------------------------------------------------
AVAILABLE_MODELS: dict[str, str] = {
    # Free tier
    "gemini-2.0-flash-free": "google/gemini-2.0-flash-exp:free",
    "gemini-flash-free": "google/gemini-flash-1.5-8b-exp",
    "llama-3.1-8b": "meta-llama/llama-3.1-8b-instruct:free",
    # Paid but affordable
    "gemini-2.0-flash": "google/gemini-2.0-flash-001",
    "gemini-1.5-flash": "google/gemini-flash-1.5",
    "gpt-4o-mini": "openai/gpt-4o-mini",
    "claude-3-haiku": "anthropic/claude-3-haiku",
    # Premium
    "gpt-4o": "openai/gpt-4o",
    "claude-3.5-sonnet": "anthropic/claude-3.5-sonnet",
    "gemini-1.5-pro": "google/gemini-pro-1.5",
}

DEFAULT_MODEL_KEY: str = "gemini-2.0-flash-free"

FREE_MODEL_FALLBACKS: tuple[str, ...] = (
    "google/gemini-2.0-flash-exp:free",
    "meta-llama/llama-3.1-8b-instruct:free",
    "google/gemini-flash-1.5-8b-exp",
)
"""Free models, in the order they are tried when the primary is rate limited."""

DIRECT_GEMINI_MODEL: str = "gemini-2.0-flash"

PROVIDER_OPENROUTER: str = "openrouter"
PROVIDER_GEMINI: str = "gemini"

# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------
RATE_PER_MINUTE: int = 5
RATE_PER_HOUR: int = 30
RATE_PER_DAY: int = 100

BUCKET_SECONDS: dict[str, int] = {
    "minute": 60,
    "hour": 3_600,
    "day": 86_400,
}
"""Bucket length per granularity, in declaration order."""

BUCKET_KEY_NAMES: dict[str, str] = {"minute": "min", "hour": "hour", "day": "day"}

TTL_MULTIPLIER: int = 2
"""Counter keys live for this many bucket lengths so boundary skew never evicts early."""

RATE_KEY_TMPL: str = "rate:poem:{identity}:{granularity}:{bucket}"

# ---------------------------------------------------------------------------
# Request defaults
# ---------------------------------------------------------------------------
DEFAULT_LANGUAGE: str = "nl"
DEFAULT_NUM_LINES: int = 12
DEFAULT_FRIENDLINESS: int = 50

LANGUAGE_NAMES: dict[str, str] = {
    "nl": "Nederlands",
    "en": "English",
    "ar": "Arabic",
    "tr": "Turkish",
}
