# poem_router/exceptions.py
"""
Custom exceptions for poem-router.

All public exceptions inherit from PoemRouterError so callers can catch
the whole family with a single except clause if preferred.

Provider failures carry a ``kind`` and a ``retryable`` flag. The
orchestrator absorbs retryable failures and only ever surfaces the final
outcome of a request.
"""

from __future__ import annotations

import re


class PoemRouterError(Exception):
    """Base exception for all poem-router errors."""


class ConfigurationError(PoemRouterError):
    """Raised when a required credential or setting is missing."""


class InvalidPoemRequest(PoemRouterError):
    """Raised when the inbound poem request is missing required input."""


class ProviderError(PoemRouterError):
    """
    A failed attempt against one upstream candidate.

    Attributes
    ----------
    kind:
        Short machine-readable failure class, e.g. ``"rate_limited"``.
    retryable:
        Whether the orchestrator may advance to the next candidate.
    model:
        The candidate label the failure belongs to, if known.
    cause:
        The original exception raised by the provider SDK.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        kind: str = "provider_error",
        model: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.kind = kind
        self.model = model
        self.cause = cause
        super().__init__(message)


class RetryableProviderError(ProviderError):
    """Capacity or availability failure; the next candidate is tried."""

    retryable = True


class EmptyResponseError(RetryableProviderError):
    """
    The upstream stream ended without producing any text.

    Treated like silent throttling. This is a heuristic: a model could
    legitimately return nothing.
    """

    def __init__(self, model: str | None = None) -> None:
        super().__init__(
            f"Model '{model}' returned an empty response",
            kind="empty_response",
            model=model,
        )


class FatalProviderError(ProviderError):
    """Any non-retryable upstream failure; the chain is aborted."""


class ExhaustionError(ProviderError):
    """
    Raised when every candidate in the chain failed retryably.

    Attributes
    ----------
    attempts:
        Number of candidates that were attempted.
    errors:
        Failures of each attempt, in order.
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        errors: list[ProviderError],
    ) -> None:
        self.attempts = attempts
        self.errors = errors
        last = errors[-1] if errors else None
        super().__init__(
            message,
            kind="exhausted",
            model=last.model if last else None,
            cause=last,
        )

    @property
    def last_error(self) -> ProviderError | None:
        return self.errors[-1] if self.errors else None


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

RETRYABLE_STATUS_KINDS: dict[int, str] = {
    429: "rate_limited",
    404: "not_found",
    400: "bad_request",
}

_RATE_LIMIT_PATTERN = re.compile(
    r"rate[\s_-]?limit|\b429\b|too many requests|resource[\s_]exhausted",
    re.IGNORECASE,
)


def status_code_of(exc: BaseException) -> int | None:
    """
    Best-effort HTTP status extraction.

    openai errors expose ``status_code``; google.api_core errors expose an
    integer ``code``; httpx errors carry a ``response``.
    """
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return int(value)
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def is_rate_limit_error(exc: BaseException) -> bool:
    """True for HTTP 429 or an error message that reports rate limiting."""
    if isinstance(exc, ProviderError) and exc.kind in ("rate_limited", "exhausted"):
        return True
    if status_code_of(exc) == 429:
        return True
    return bool(_RATE_LIMIT_PATTERN.search(str(exc)))


def classify_failure(exc: BaseException, model: str | None = None) -> ProviderError:
    """Wrap a provider exception as a retryable or fatal ProviderError."""
    if isinstance(exc, ProviderError):
        return exc

    status = status_code_of(exc)
    message = str(exc) or type(exc).__name__

    if is_rate_limit_error(exc):
        return RetryableProviderError(message, kind="rate_limited", model=model, cause=exc)
    if status in RETRYABLE_STATUS_KINDS:
        return RetryableProviderError(
            message, kind=RETRYABLE_STATUS_KINDS[status], model=model, cause=exc
        )
    return FatalProviderError(message, kind="provider_error", model=model, cause=exc)
