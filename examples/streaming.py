# examples/streaming.py
"""
Stream a poem from the HTTP API.

Start the server first:
  poem-router serve --port 8000

Then run:
  python examples/streaming.py
"""

import asyncio

import httpx


async def main():
    payload = {
        "recipientName": "Fatima",
        "recipientFacts": "houdt van voetbal en speelt keeper",
        "numLines": 12,
        "isClassic": True,
        "friendliness": 80,
    }
    async with httpx.AsyncClient(base_url="http://127.0.0.1:8000", timeout=60) as client:
        async with client.stream("POST", "/api/generate-poem", json=payload) as response:
            if response.status_code != 200:
                await response.aread()
                print(f"HTTP {response.status_code}: {response.json()['error']}")
                return

            print(f"Model: {response.headers['X-Model-Used']}\n")
            async for chunk in response.aiter_text():
                print(chunk, end="", flush=True)
            print("\n\nDone.")


if __name__ == "__main__":
    asyncio.run(main())
