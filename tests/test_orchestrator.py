# tests/test_orchestrator.py
"""
Tests for FallbackOrchestrator.

Uses ScriptedProvider (see conftest) so no real API calls are made.
Covers:
  - First-chunk success with no fallback.
  - Retryable failures (429, 404, 400, rate-limit messages, empty stream).
  - Fatal failures abort the chain.
  - Paid primary: a single attempt, never a fallback.
  - The direct backup: exactly one attempt, after the free chain.
  - Stream relay: first chunk replayed, upstream closed.
  - Cancellation is not classified.
  - on_attempt events.
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import FREE_PRIMARY, FREE_SECOND, FREE_THIRD, HANG, StatusError
from poem_router.exceptions import ExhaustionError, FatalProviderError
from poem_router.models import GenerationRequest, ModelCandidate
from poem_router.orchestrator import BACKUP_FALLBACK_REASON

REQUEST = GenerationRequest(prompt="Schrijf een gedicht voor Jan")


@pytest.mark.asyncio
class TestFirstChunkSuccess:
    async def test_primary_serves_request(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator(
            {FREE_PRIMARY: ["Lieve Jan,\n", "Sint heeft goed nieuws\n"]}
        )
        result = await orchestrator.generate(REQUEST)
        assert result.model_used == FREE_PRIMARY
        assert result.fallback_used is False
        assert result.fallback_reason is None
        assert await result.text() == "Lieve Jan,\nSint heeft goed nieuws\n"
        assert openrouter.calls == [FREE_PRIMARY]

    async def test_upstream_closed_after_stream_drained(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator()
        result = await orchestrator.generate(REQUEST)
        await result.text()
        assert openrouter.closed == [FREE_PRIMARY]

    async def test_closing_result_stream_closes_upstream(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator({FREE_PRIMARY: ["a", "b", "c"]})
        result = await orchestrator.generate(REQUEST)
        assert await result.stream.__anext__() == "a"
        await result.stream.aclose()
        assert openrouter.closed == [FREE_PRIMARY]

    async def test_mid_stream_error_reaches_caller(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator(
            {FREE_PRIMARY: ["Lieve Jan,", StatusError(500, "connection reset")]}
        )
        result = await orchestrator.generate(REQUEST)
        chunks = []
        with pytest.raises(StatusError):
            async for chunk in result.stream:
                chunks.append(chunk)
        assert chunks == ["Lieve Jan,"]
        # Committed to the primary: no other candidate is tried
        assert openrouter.calls == [FREE_PRIMARY]


@pytest.mark.asyncio
class TestRetryableFallback:
    async def test_rate_limited_primary_falls_back(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator(
            {FREE_PRIMARY: StatusError(429, "Too Many Requests")}
        )
        result = await orchestrator.generate(REQUEST)
        assert result.model_used == FREE_SECOND
        assert result.fallback_used is True
        assert result.fallback_reason == "1 model(s) were busy"
        assert openrouter.calls == [FREE_PRIMARY, FREE_SECOND]

    async def test_third_candidate_serves_only_its_own_output(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator(
            {
                FREE_PRIMARY: StatusError(404, "No endpoints found"),
                FREE_SECOND: StatusError(400, "Provider returned error"),
                FREE_THIRD: ["third ", "model"],
            }
        )
        result = await orchestrator.generate(REQUEST)
        assert result.model_used == FREE_THIRD
        assert result.fallback_count == 2
        assert result.fallback_reason == "2 model(s) were busy"
        assert await result.text() == "third model"

    async def test_rate_limit_message_without_status_is_retryable(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator(
            {FREE_PRIMARY: RuntimeError("Provider is temporarily rate-limited upstream")}
        )
        result = await orchestrator.generate(REQUEST)
        assert result.model_used == FREE_SECOND

    async def test_empty_stream_is_retryable(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator({FREE_PRIMARY: []})
        result = await orchestrator.generate(REQUEST)
        assert result.model_used == FREE_SECOND
        assert openrouter.calls == [FREE_PRIMARY, FREE_SECOND]

    async def test_failed_candidate_stream_is_closed(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator({FREE_PRIMARY: [StatusError(429)]})
        await orchestrator.generate(REQUEST)
        assert FREE_PRIMARY in openrouter.closed

    async def test_exhaustion_without_backup(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator(
            {model: StatusError(429) for model in (FREE_PRIMARY, FREE_SECOND, FREE_THIRD)}
        )
        with pytest.raises(ExhaustionError) as exc_info:
            await orchestrator.generate(REQUEST)
        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error.model == FREE_THIRD
        assert "rate limited" in str(exc_info.value)
        assert openrouter.calls == [FREE_PRIMARY, FREE_SECOND, FREE_THIRD]

    async def test_single_free_candidate_exhausts(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator({FREE_PRIMARY: StatusError(429)})
        only = [ModelCandidate(model=FREE_PRIMARY, position=0, tier="free", provider="openrouter")]
        with pytest.raises(ExhaustionError):
            await orchestrator.generate(REQUEST, candidates=only)

    async def test_empty_chain(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator()
        with pytest.raises(ExhaustionError, match="All candidates exhausted") as exc_info:
            await orchestrator.generate(REQUEST, candidates=[])
        assert exc_info.value.last_error is None
        assert openrouter.calls == []


@pytest.mark.asyncio
class TestFatalFailures:
    async def test_auth_failure_aborts_chain(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator(
            {FREE_PRIMARY: StatusError(401, "Invalid API key")}
        )
        with pytest.raises(FatalProviderError) as exc_info:
            await orchestrator.generate(REQUEST)
        assert str(exc_info.value) == "Invalid API key"
        assert openrouter.calls == [FREE_PRIMARY]

    async def test_fatal_after_retryable_aborts(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator(
            {FREE_PRIMARY: StatusError(429), FREE_SECOND: StatusError(500, "boom")},
            backup_scripts={},
        )
        with pytest.raises(FatalProviderError):
            await orchestrator.generate(REQUEST)
        assert openrouter.calls == [FREE_PRIMARY, FREE_SECOND]

    async def test_paid_primary_rate_limit_is_fatal(self, make_orchestrator):
        orchestrator, openrouter, _ = make_orchestrator(
            {"openai/gpt-4o-mini": StatusError(429, "Rate limit reached")},
            backup_scripts={},
            model="gpt-4o-mini",
        )
        with pytest.raises(FatalProviderError) as exc_info:
            await orchestrator.generate(REQUEST)
        assert exc_info.value.kind == "rate_limited"
        assert openrouter.calls == ["openai/gpt-4o-mini"]

    async def test_paid_primary_success(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator(model="gpt-4o-mini")
        result = await orchestrator.generate(REQUEST)
        assert result.model_used == "openai/gpt-4o-mini"
        assert result.fallback_used is False


@pytest.mark.asyncio
class TestDirectBackup:
    async def test_backup_serves_after_free_chain(self, make_orchestrator):
        orchestrator, openrouter, backup = make_orchestrator(
            {model: StatusError(429) for model in (FREE_PRIMARY, FREE_SECOND, FREE_THIRD)},
            backup_scripts={"gemini-2.0-flash": ["backup poem"]},
        )
        result = await orchestrator.generate(REQUEST)
        assert result.model_used == "direct-gemini"
        assert result.fallback_reason == BACKUP_FALLBACK_REASON
        assert result.fallback_count == 3
        assert await result.text() == "backup poem"
        assert backup.calls == ["gemini-2.0-flash"]

    async def test_backup_not_used_when_free_model_answers(self, make_orchestrator):
        orchestrator, _, backup = make_orchestrator(backup_scripts={})
        await orchestrator.generate(REQUEST)
        assert backup.calls == []

    async def test_backup_rate_limited_tried_once(self, make_orchestrator):
        orchestrator, _, backup = make_orchestrator(
            {model: StatusError(429) for model in (FREE_PRIMARY, FREE_SECOND, FREE_THIRD)},
            backup_scripts={"gemini-2.0-flash": StatusError(429, "quota exceeded")},
        )
        with pytest.raises(ExhaustionError) as exc_info:
            await orchestrator.generate(REQUEST)
        assert backup.calls == ["gemini-2.0-flash"]
        assert exc_info.value.attempts == 4
        assert exc_info.value.last_error.model == "direct-gemini"

    async def test_backup_fatal_failure_is_fatal(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator(
            {model: StatusError(429) for model in (FREE_PRIMARY, FREE_SECOND, FREE_THIRD)},
            backup_scripts={"gemini-2.0-flash": StatusError(403, "API key not valid")},
        )
        with pytest.raises(FatalProviderError) as exc_info:
            await orchestrator.generate(REQUEST)
        assert exc_info.value.model == "direct-gemini"


@pytest.mark.asyncio
class TestCancellation:
    async def test_cancel_while_waiting_is_not_classified(self, make_orchestrator):
        events = []

        async def on_attempt(event):
            events.append(event)

        orchestrator, openrouter, _ = make_orchestrator(
            {FREE_PRIMARY: [HANG]}, on_attempt=on_attempt
        )
        task = asyncio.create_task(orchestrator.generate(REQUEST))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert openrouter.calls == [FREE_PRIMARY]
        assert openrouter.closed == [FREE_PRIMARY]
        assert events == []


@pytest.mark.asyncio
class TestAttemptEvents:
    async def test_events_for_each_attempt(self, make_orchestrator):
        events = []

        async def on_attempt(event):
            events.append(event)

        orchestrator, _, _ = make_orchestrator(
            {FREE_PRIMARY: StatusError(429)}, on_attempt=on_attempt
        )
        await orchestrator.generate(REQUEST)
        assert [e.outcome for e in events] == ["retryable", "success"]
        assert [e.fallback_depth for e in events] == [0, 1]
        assert events[0].candidate == FREE_PRIMARY
        assert events[0].error_kind == "rate_limited"
        assert events[1].error is None

    async def test_failing_callback_does_not_break_generation(self, make_orchestrator):
        async def on_attempt(event):
            raise RuntimeError("monitoring down")

        orchestrator, _, _ = make_orchestrator(on_attempt=on_attempt)
        result = await orchestrator.generate(REQUEST)
        assert result.model_used == FREE_PRIMARY

    async def test_backup_event_tier(self, make_orchestrator):
        events = []

        async def on_attempt(event):
            events.append(event)

        orchestrator, _, _ = make_orchestrator(
            {model: StatusError(429) for model in (FREE_PRIMARY, FREE_SECOND, FREE_THIRD)},
            backup_scripts={},
            on_attempt=on_attempt,
        )
        await orchestrator.generate(REQUEST)
        assert events[-1].tier == "direct-backup"
        assert events[-1].candidate == "direct-gemini"
        assert events[-1].outcome == "success"

    async def test_rate_limited_backup_event_is_retryable(self, make_orchestrator):
        events = []

        async def on_attempt(event):
            events.append(event)

        orchestrator, _, _ = make_orchestrator(
            {model: StatusError(429) for model in (FREE_PRIMARY, FREE_SECOND, FREE_THIRD)},
            backup_scripts={"gemini-2.0-flash": StatusError(429, "quota exceeded")},
            on_attempt=on_attempt,
        )
        with pytest.raises(ExhaustionError):
            await orchestrator.generate(REQUEST)
        assert events[-1].candidate == "direct-gemini"
        assert events[-1].outcome == "retryable"
        assert events[-1].error_kind == "rate_limited"

    async def test_fatal_backup_event(self, make_orchestrator):
        events = []

        async def on_attempt(event):
            events.append(event)

        orchestrator, _, _ = make_orchestrator(
            {model: StatusError(429) for model in (FREE_PRIMARY, FREE_SECOND, FREE_THIRD)},
            backup_scripts={"gemini-2.0-flash": StatusError(403, "API key not valid")},
            on_attempt=on_attempt,
        )
        with pytest.raises(FatalProviderError):
            await orchestrator.generate(REQUEST)
        assert events[-1].outcome == "fatal"
