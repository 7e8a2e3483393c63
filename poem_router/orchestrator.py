# poem_router/orchestrator.py
"""
FallbackOrchestrator — drives the candidate chain for one request.

Pipeline:
  1. Take the ordered candidate list from the ProviderSelector.
  2. For each candidate, open a stream and wait for the first chunk.
  3. First chunk received → hand back a stream that replays it and relays
     the rest of upstream.
  4. Retryable failure → next candidate. Fatal failure → abort.
  5. After the free chain, the direct backup (if any) gets one attempt.

Retryable vs fatal is always decided before the caller sees any bytes, so
output from different models is never mixed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from .config import AppConfig
from .exceptions import (
    EmptyResponseError,
    ExhaustionError,
    FatalProviderError,
    ProviderError,
    classify_failure,
)
from .models import AttemptEvent, GenerationRequest, GenerationResult, ModelCandidate
from .providers.base import BaseProvider
from .providers.registry import ProviderRegistry
from .selector import ProviderSelector

logger = logging.getLogger(__name__)

BACKUP_FALLBACK_REASON = "All free models were busy, used backup"


async def _relay(first: str, upstream: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield the already-consumed first chunk, then the rest of upstream."""
    try:
        yield first
        async for chunk in upstream:
            yield chunk
    finally:
        await upstream.aclose()  # type: ignore[attr-defined]


class FallbackOrchestrator:
    """
    Ordered, sequential fallback over model candidates.

    Parameters
    ----------
    registry:
        Provider adapters, looked up by each candidate's ``provider``.
    selector:
        Builds the candidate list when ``generate()`` is not given one.
    on_attempt:
        Optional async callback receiving an AttemptEvent per attempt.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        selector: ProviderSelector,
        on_attempt: Any = None,
    ) -> None:
        self._registry = registry
        self._selector = selector
        self._on_attempt = on_attempt

    @classmethod
    def from_config(cls, config: AppConfig) -> "FallbackOrchestrator":
        return cls(
            registry=ProviderRegistry.from_config(config),
            selector=ProviderSelector(model=config.model, backup_available=config.has_backup),
            on_attempt=config.on_attempt,
        )

    @property
    def selector(self) -> ProviderSelector:
        return self._selector

    # ------------------------------------------------------------------
    # Single attempt
    # ------------------------------------------------------------------

    async def _open(
        self,
        provider: BaseProvider,
        candidate: ModelCandidate,
        request: GenerationRequest,
    ) -> AsyncIterator[str]:
        """Open a stream and wait for its first chunk. Raises ProviderError on failure."""
        upstream = provider.stream(
            request.prompt,
            model=candidate.model,
            temperature=request.temperature,
        )
        try:
            first = await upstream.__anext__()
        except StopAsyncIteration:
            raise EmptyResponseError(candidate.label) from None
        except asyncio.CancelledError:
            await upstream.aclose()  # type: ignore[attr-defined]
            raise
        except Exception as exc:
            await upstream.aclose()  # type: ignore[attr-defined]
            raise classify_failure(exc, candidate.label) from exc
        return _relay(first, upstream)

    async def _emit(
        self,
        candidate: ModelCandidate,
        outcome: str,
        fallback_depth: int,
        error: ProviderError | None = None,
    ) -> None:
        level = logging.INFO if outcome == "success" else logging.WARNING
        logger.log(
            level,
            "attempt %s on %s (fallback depth %d)%s",
            outcome,
            candidate.label,
            fallback_depth,
            f": {error}" if error is not None else "",
            extra={
                "candidate": candidate.label,
                "tier": candidate.tier,
                "outcome": outcome,
                "fallback_depth": fallback_depth,
            },
        )
        if self._on_attempt is None:
            return
        event = AttemptEvent(
            candidate=candidate.label,
            tier=candidate.tier,
            outcome=outcome,  # type: ignore[arg-type]
            fallback_depth=fallback_depth,
            error_kind=error.kind if error is not None else None,
            error=str(error) if error is not None else None,
        )
        try:
            await self._on_attempt(event)
        except Exception:
            logger.exception("on_attempt callback failed")

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    async def generate(
        self,
        request: GenerationRequest,
        candidates: list[ModelCandidate] | None = None,
    ) -> GenerationResult:
        """
        Return the stream of the first candidate that produces output.

        Raises
        ------
        FatalProviderError
            A candidate failed with a non-retryable error, the only
            candidate (paid primary) failed, or the backup failed fatally.
        ExhaustionError
            Every candidate failed retryably. ``last_error`` is the final
            attempt's failure (the backup's, when one was tried).
        """
        chain = candidates if candidates is not None else self._selector.candidates()
        primary_chain = [c for c in chain if not c.is_backup]
        backups = [c for c in chain if c.is_backup]
        paid_only = len(chain) == 1 and chain[0].tier == "paid"

        errors: list[ProviderError] = []

        for candidate in primary_chain:
            depth = len(errors)
            try:
                stream = await self._attempt(candidate, request)
            except asyncio.CancelledError:
                logger.debug("request cancelled while waiting on %s", candidate.label)
                raise
            except ProviderError as err:
                if not err.retryable or paid_only:
                    await self._emit(candidate, "fatal", depth, err)
                    raise self._as_fatal(err)
                await self._emit(candidate, "retryable", depth, err)
                errors.append(err)
                continue

            await self._emit(candidate, "success", depth)
            return GenerationResult(
                stream=stream,
                model_used=candidate.label,
                fallback_count=depth,
                fallback_reason=f"{depth} model(s) were busy" if depth else None,
            )

        if backups:
            backup = backups[0]
            depth = len(errors)
            logger.info("all free models exhausted, falling back to %s", backup.label)
            try:
                stream = await self._attempt(backup, request)
            except asyncio.CancelledError:
                logger.debug("request cancelled while waiting on %s", backup.label)
                raise
            except ProviderError as err:
                await self._emit(backup, "retryable" if err.retryable else "fatal", depth, err)
                if not err.retryable:
                    raise self._as_fatal(err)
                errors.append(err)
            else:
                await self._emit(backup, "success", depth)
                return GenerationResult(
                    stream=stream,
                    model_used=backup.label,
                    fallback_count=depth,
                    fallback_reason=BACKUP_FALLBACK_REASON,
                )

        if not errors:
            raise ExhaustionError("All candidates exhausted", attempts=0, errors=errors)
        raise ExhaustionError(
            "All free models are currently rate limited. Please try again in a moment.",
            attempts=len(errors),
            errors=errors,
        )

    async def _attempt(self, candidate: ModelCandidate, request: GenerationRequest) -> AsyncIterator[str]:
        provider = await self._registry.get(candidate.provider)
        return await self._open(provider, candidate, request)

    @staticmethod
    def _as_fatal(err: ProviderError) -> FatalProviderError:
        if isinstance(err, FatalProviderError):
            return err
        return FatalProviderError(str(err), kind=err.kind, model=err.model, cause=err.cause)

    async def close(self) -> None:
        """Release all provider resources."""
        await self._registry.close_all()

    async def __aenter__(self) -> "FallbackOrchestrator":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
