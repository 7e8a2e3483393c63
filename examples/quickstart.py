# examples/quickstart.py
"""
Quickstart — generate one poem through the fallback chain.

Run with:
  OPENROUTER_API_KEY=... python examples/quickstart.py
"""

import asyncio
import os

from poem_router import AppConfig, FallbackOrchestrator, GenerationRequest, PoemRequest
from poem_router.prompts import build_prompt


async def log_attempt(event):
    print(f"[{event.outcome}] {event.candidate} (depth {event.fallback_depth})")


async def main():
    config = AppConfig.from_dict({
        "openrouter_api_key": os.environ["OPENROUTER_API_KEY"],
        "gemini_api_key": os.environ.get("GEMINI_API_KEY"),
        "model": "gemini-2.0-flash-free",
        "on_attempt": log_attempt,
    })

    poem = PoemRequest.from_payload({
        "recipientName": "Jan",
        "recipientFacts": "fietst elke dag naar zijn werk, ook als het regent",
        "numLines": 8,
    })

    async with FallbackOrchestrator.from_config(config) as orchestrator:
        result = await orchestrator.generate(GenerationRequest(prompt=build_prompt(poem)))
        text = await result.text()

        print(f"\n{text}\n")
        print(f"Model:     {result.model_used}")
        print(f"Fallback:  {result.fallback_used}")
        if result.fallback_reason:
            print(f"Reason:    {result.fallback_reason}")


if __name__ == "__main__":
    asyncio.run(main())
