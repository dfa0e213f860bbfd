#!/usr/bin/env python3
"""Example client for the playground relay.

Usage:
    uv run python scripts/client_example.py --url http://localhost:3001

Requires the relay to be running (playbox).
"""

import argparse
import asyncio

import httpx

from playbox.client import PlaygroundClient


async def run(url: str) -> None:
    print("=== Playground Client Test ===\n")

    async with PlaygroundClient(url) as client:
        print("Checking health...")
        health = await client.health()
        print(f"  {health['status']}: {health['message']}")

        print("\nExecuting 'print(\"hi\")'...")
        result = await client.execute('print("hi")')
        print(f"  Success: {result.get('success')}")
        print(f"  Exit code: {result.get('exitCode')}")
        print(f"  Output: {result.get('output', '').strip()}")
        if result.get("stderr"):
            print(f"  Stderr: {result['stderr'].strip()}")

        print("\nSubmitting oversized code...")
        try:
            await client.execute("x" * 10001)
        except httpx.HTTPStatusError as e:
            print(f"  Rejected ({e.response.status_code}): {e.response.json()['error']}")

    print("\n=== Done ===")


def main():
    parser = argparse.ArgumentParser(description="Playground relay client example")
    parser.add_argument("--url", default="http://localhost:3001")
    args = parser.parse_args()
    asyncio.run(run(args.url))


if __name__ == "__main__":
    main()
