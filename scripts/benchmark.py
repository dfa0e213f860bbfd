#!/usr/bin/env python3
"""
Benchmark suite for the playground relay.

Measures:
1. Health latency - HTTP overhead with no container involved
2. Execution latency - Full round trip of one small submission
3. Concurrent executions - Latency as simultaneous submissions grow

Usage:
    uv run python scripts/benchmark.py --url http://localhost:3001

Requires the relay to be running (playbox).
"""

import argparse
import asyncio
import statistics
import time
from dataclasses import dataclass

from playbox.client import PlaygroundClient

SNIPPET = 'print("hello")'


@dataclass
class BenchmarkResult:
    name: str
    samples: list[float]
    failures: int = 0
    unit: str = "ms"

    @property
    def mean(self) -> float:
        return statistics.mean(self.samples) if self.samples else 0.0

    @property
    def median(self) -> float:
        return statistics.median(self.samples) if self.samples else 0.0

    @property
    def p95(self) -> float:
        if not self.samples:
            return 0.0
        sorted_samples = sorted(self.samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]

    def __str__(self) -> str:
        return (
            f"{self.name}:\n"
            f"  Mean:     {self.mean:>8.2f} {self.unit}\n"
            f"  Median:   {self.median:>8.2f} {self.unit}\n"
            f"  P95:      {self.p95:>8.2f} {self.unit}\n"
            f"  Samples:  {len(self.samples)}\n"
            f"  Failures: {self.failures}"
        )


async def timed_execute(client: PlaygroundClient, code: str) -> tuple[float, bool]:
    start = time.perf_counter()
    result = await client.execute(code)
    elapsed = (time.perf_counter() - start) * 1000  # ms
    return elapsed, bool(result.get("success"))


async def benchmark_health(client: PlaygroundClient, iterations: int) -> BenchmarkResult:
    print(f"\n[1/3] Health Latency ({iterations} iterations)...")
    samples = []
    for _ in range(iterations):
        start = time.perf_counter()
        await client.health()
        samples.append((time.perf_counter() - start) * 1000)
    return BenchmarkResult("Health Latency", samples)


async def benchmark_exec(client: PlaygroundClient, iterations: int) -> BenchmarkResult:
    print(f"\n[2/3] Execution Latency ({iterations} iterations)...")

    # Warm up (pulls the runtime image on first use)
    await client.execute(SNIPPET)

    samples = []
    failures = 0
    for i in range(iterations):
        elapsed, ok = await timed_execute(client, SNIPPET)
        samples.append(elapsed)
        failures += 0 if ok else 1
        print(f"  Iteration {i+1}: {elapsed:.2f} ms")
    return BenchmarkResult("Execution Latency", samples, failures)


async def benchmark_concurrent(
    client: PlaygroundClient,
    max_concurrent: int,
    step: int = 5,
) -> list[tuple[int, float, int]]:
    print(f"\n[3/3] Concurrent Executions (up to {max_concurrent})...")
    results = []
    for count in range(step, max_concurrent + 1, step):
        runs = await asyncio.gather(
            *(timed_execute(client, f'print("run {n}")') for n in range(count))
        )
        avg_latency = statistics.mean(elapsed for elapsed, _ in runs)
        failures = sum(1 for _, ok in runs if not ok)
        results.append((count, avg_latency, failures))
        print(f"  {count} concurrent: avg latency = {avg_latency:.2f} ms, failures = {failures}")
    return results


def print_summary(results: dict) -> None:
    print("\n" + "=" * 60)
    print("BENCHMARK SUMMARY")
    print("=" * 60)

    for result in results.values():
        if isinstance(result, BenchmarkResult):
            print(f"\n{result}")

    if "concurrent" in results:
        print("\nConcurrent Execution Scaling:")
        for count, latency, failures in results["concurrent"]:
            print(f"  {count:>3} concurrent: {latency:>8.2f} ms avg ({failures} failed)")


async def run(args: argparse.Namespace) -> None:
    results = {}
    async with PlaygroundClient(args.url, timeout=args.timeout) as client:
        if "health" not in args.skip:
            results["health"] = await benchmark_health(client, args.health_iterations)
        if "exec" not in args.skip:
            results["exec"] = await benchmark_exec(client, args.exec_iterations)
        if "concurrent" not in args.skip:
            results["concurrent"] = await benchmark_concurrent(client, args.max_concurrent)
    print_summary(results)


def main():
    parser = argparse.ArgumentParser(description="Benchmark the playground relay")
    parser.add_argument("--url", default="http://localhost:3001")
    parser.add_argument("--timeout", type=float, default=60.0)
    parser.add_argument("--health-iterations", type=int, default=50)
    parser.add_argument("--exec-iterations", type=int, default=10)
    parser.add_argument("--max-concurrent", type=int, default=10)
    parser.add_argument("--skip", nargs="*", choices=["health", "exec", "concurrent"], default=[])
    args = parser.parse_args()

    print("=" * 60)
    print("PLAYBOX BENCHMARK")
    print("=" * 60)

    asyncio.run(run(args))


if __name__ == "__main__":
    main()
