# poem_router/cli.py
"""
CLI entry point for poem-router.

Available commands:
  poem-router serve [--config poem-router.yaml] [--host H] [--port N]
  poem-router candidates [--config poem-router.yaml]
  poem-router generate NAME [--facts TEXT] [--lines N] [--free-style] [--language nl]
  poem-router limits IDENTITY [--config poem-router.yaml]
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import AppConfig
from .exceptions import PoemRouterError
from .log import setup_logging
from .models import GenerationRequest, PoemRequest, RateLimitDecision
from .orchestrator import FallbackOrchestrator
from .prompts import build_prompt
from .ratelimit import RateLimiter
from .selector import ProviderSelector

app = typer.Typer(
    name="poem-router",
    help="Stream Sinterklaas poems from free LLMs with automatic fallback.",
    add_completion=False,
)
console = Console()


def _load_config(config_path: Optional[str]) -> AppConfig:
    if config_path:
        return AppConfig.from_yaml(config_path)
    return AppConfig.from_env()


def _candidates_table(config: AppConfig) -> Table:
    selector = ProviderSelector(model=config.model, backup_available=config.has_backup)
    table = Table(title="Fallback chain", show_lines=True)
    table.add_column("#", justify="right")
    table.add_column("Model", style="bold cyan", no_wrap=True)
    table.add_column("Tier")
    table.add_column("Provider")

    for candidate in selector.candidates():
        tier = candidate.tier
        if tier == "paid":
            tier = "[yellow]paid[/yellow]"
        elif tier == "direct-backup":
            tier = "[magenta]direct-backup[/magenta]"
        table.add_row(str(candidate.position + 1), candidate.model, tier, candidate.provider)
    return table


def _limits_table(identity: str, decision: RateLimitDecision, limiter: RateLimiter) -> Table:
    table = Table(title=f"Quota for {identity}", show_lines=True)
    table.add_column("Window", style="bold cyan")
    table.add_column("Remaining")
    table.add_column("Limit")
    table.add_column("Resets in")

    for granularity in ("minute", "hour", "day"):
        remaining = decision.remaining.get(granularity)  # type: ignore[arg-type]
        remaining_str = f"[red]{remaining}[/red]" if remaining == 0 else str(remaining)
        table.add_row(
            granularity,
            remaining_str,
            str(limiter.limits.ceiling(granularity)),
            f"{decision.reset_in.get(granularity)}s",  # type: ignore[arg-type]
        )
    return table


@app.command()
def serve(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to poem-router.yaml"),
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from .server import create_app

    cfg = _load_config(config)
    setup_logging(cfg.log_level, cfg.log_json)
    uvicorn.run(create_app(cfg), host=host, port=port, log_config=None)


@app.command()
def candidates(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to poem-router.yaml"),
) -> None:
    """Show the models a request would try, in order."""
    console.print(_candidates_table(_load_config(config)))


async def _stream_poem(cfg: AppConfig, poem: PoemRequest) -> None:
    request = GenerationRequest(
        prompt=build_prompt(poem, cfg.default_language),
        temperature=cfg.temperature,
    )
    async with FallbackOrchestrator.from_config(cfg) as orchestrator:
        result = await orchestrator.generate(request)
        async for chunk in result.stream:
            console.print(chunk, end="", markup=False, highlight=False)
        console.print()
        note = f"model: {result.model_used}"
        if result.fallback_reason:
            note += f" ({result.fallback_reason})"
        console.print(f"[dim]{note}[/dim]")


@app.command()
def generate(
    name: str = typer.Argument(..., help="Recipient name"),
    facts: Optional[str] = typer.Option(None, "--facts", "-f", help="Facts about the recipient"),
    lines: int = typer.Option(12, "--lines", "-n", help="Number of lines"),
    free_style: bool = typer.Option(False, "--free-style", help="Free-flowing instead of classic"),
    friendliness: int = typer.Option(50, "--friendliness", help="Tone, 0 (witty) to 100 (friendly)"),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="Output language code"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to poem-router.yaml"),
) -> None:
    """Generate a poem and stream it to the terminal."""
    cfg = _load_config(config)
    setup_logging("WARNING")
    try:
        poem = PoemRequest.from_payload(
            {
                "recipientName": name,
                "recipientFacts": facts,
                "numLines": lines,
                "isClassic": not free_style,
                "friendliness": friendliness,
                "poemLanguage": language,
            }
        )
        asyncio.run(_stream_poem(cfg, poem))
    except PoemRouterError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)


@app.command()
def limits(
    identity: str = typer.Argument(..., help="Client identity (IP address)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to poem-router.yaml"),
) -> None:
    """Show the remaining quota for a client without using any of it."""
    cfg = _load_config(config)
    limiter = RateLimiter.from_config(cfg)
    if not limiter.enabled:
        typer.echo("Rate limiting is disabled (no redis_url configured).", err=True)
        raise typer.Exit(1)

    async def _peek() -> RateLimitDecision:
        try:
            return await limiter.peek(identity)
        finally:
            await limiter.close()

    console.print(_limits_table(identity, asyncio.run(_peek()), limiter))


if __name__ == "__main__":  # pragma: no cover
    app()
