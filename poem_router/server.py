# poem_router/server.py
"""
FastAPI application.

Routes:
  POST /api/generate-poem  — validate, rate limit, stream a poem
  GET  /healthz            — configuration summary

Build the app with create_app(); ``poem-router serve`` runs it with uvicorn.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from .config import AppConfig
from .exceptions import ExhaustionError, InvalidPoemRequest, PoemRouterError
from .models import GenerationRequest, PoemRequest, RateLimitDecision
from .orchestrator import FallbackOrchestrator
from .prompts import build_prompt
from .ratelimit import RateLimiter, client_ip, format_rate_limit_message

logger = logging.getLogger(__name__)

TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
ALL_MODELS_BUSY = "Alle gratis modellen zijn momenteel druk. Probeer het over een paar seconden opnieuw."
GENERIC_FAILURE = "Er is een fout opgetreden bij het genereren van het gedicht"
INVALID_BODY = "Ongeldige aanvraag"


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


def _quota_headers(decision: RateLimitDecision, limit: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(decision.remaining.minute),
        "X-RateLimit-Reset": str(decision.reset_in.minute),
    }


def create_app(
    config: AppConfig | None = None,
    orchestrator: FallbackOrchestrator | None = None,
    limiter: RateLimiter | None = None,
) -> FastAPI:
    """
    Build the application.

    Parameters
    ----------
    config:
        Defaults to AppConfig.from_env().
    orchestrator, limiter:
        Override the instances built from *config* (used by tests).
    """
    config = config or AppConfig.from_env()
    orchestrator = orchestrator or FallbackOrchestrator.from_config(config)
    limiter = limiter or RateLimiter.from_config(config)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await orchestrator.close()
        await limiter.close()

    app = FastAPI(title="poem-router", lifespan=lifespan)
    app.state.config = config
    app.state.orchestrator = orchestrator
    app.state.limiter = limiter

    @app.get("/healthz")
    async def healthz() -> dict[str, Any]:
        selector = orchestrator.selector
        return {
            "status": "ok",
            "model": selector.primary,
            "candidates": [c.label for c in selector.candidates()],
            "rate_limiting": limiter.enabled,
        }

    @app.post("/api/generate-poem")
    async def generate_poem(request: Request) -> Response:
        try:
            payload = await request.json()
        except ValueError:
            return _error(400, INVALID_BODY)

        try:
            poem = PoemRequest.from_payload(payload)
        except InvalidPoemRequest as exc:
            return _error(400, str(exc))

        language = poem.poem_language or config.default_language
        identity = client_ip(request.headers, request.client.host if request.client else None)
        decision = await limiter.check(identity)
        quota = _quota_headers(decision, limiter.limits.per_minute)
        if not decision.allowed:
            return _error(
                429,
                format_rate_limit_message(decision, language),
                headers={**quota, "Retry-After": str(decision.retry_after)},
            )

        generation = GenerationRequest(
            prompt=build_prompt(poem, config.default_language),
            temperature=config.temperature,
        )
        try:
            result = await orchestrator.generate(generation)
        except ExhaustionError as exc:
            logger.warning("all candidates exhausted: %s", exc.last_error)
            return _error(429, ALL_MODELS_BUSY, headers=quota)
        except PoemRouterError as exc:
            logger.error("poem generation failed: %s", exc)
            return _error(500, str(exc) or GENERIC_FAILURE, headers=quota)
        except Exception as exc:
            logger.exception("unexpected error generating poem")
            return _error(500, str(exc) or GENERIC_FAILURE, headers=quota)

        headers = {
            **quota,
            "X-Model-Used": result.model_used,
            "X-Fallback-Used": "true" if result.fallback_used else "false",
        }
        if result.fallback_reason:
            headers["X-Fallback-Reason"] = result.fallback_reason

        return StreamingResponse(result.stream, media_type=TEXT_CONTENT_TYPE, headers=headers)

    return app
