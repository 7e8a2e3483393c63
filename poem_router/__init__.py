# poem_router/__init__.py
"""
poem-router — Sinterklaas poems streamed from free LLMs, with fallback.

Public API surface:
  FallbackOrchestrator — tries candidates in order, streams the first that answers
  ProviderSelector     — builds the ordered candidate list from configuration
  RateLimiter          — per-client minute/hour/day admission control
  AppConfig            — top-level configuration model
  RateLimitConfig      — request ceilings per window
  GenerationRequest    — prompt + temperature passed to generate()
  GenerationResult     — stream + model used + fallback metadata
  ModelCandidate       — one upstream model in the fallback chain
  PoemRequest          — validated inbound form payload
  RateLimitDecision    — outcome of a rate-limit check
  AttemptEvent         — event fired by the on_attempt callback
  ExhaustionError      — raised when every candidate failed retryably
  FatalProviderError   — raised on a non-retryable upstream failure
  create_app           — FastAPI application factory
"""

from .config import AppConfig, RateLimitConfig
from .exceptions import (
    ConfigurationError,
    ExhaustionError,
    FatalProviderError,
    InvalidPoemRequest,
    PoemRouterError,
    RetryableProviderError,
)
from .models import (
    AttemptEvent,
    GenerationRequest,
    GenerationResult,
    ModelCandidate,
    PoemRequest,
    RateLimitDecision,
)
from .orchestrator import FallbackOrchestrator
from .ratelimit import RateLimiter
from .selector import ProviderSelector
from .server import create_app

__all__ = [
    "FallbackOrchestrator",
    "ProviderSelector",
    "RateLimiter",
    "AppConfig",
    "RateLimitConfig",
    "GenerationRequest",
    "GenerationResult",
    "ModelCandidate",
    "PoemRequest",
    "RateLimitDecision",
    "AttemptEvent",
    "PoemRouterError",
    "ConfigurationError",
    "InvalidPoemRequest",
    "RetryableProviderError",
    "FatalProviderError",
    "ExhaustionError",
    "create_app",
]

__version__ = "0.1.0"
