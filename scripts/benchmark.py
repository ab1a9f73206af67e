#!/usr/bin/env python3
"""
hscstore Performance Benchmarks

Measures the hot paths of the store and its middleware and prints the results as
rich tables. Every benchmark scales its workload until a single run takes longer
than the time limit.

Usage:
    python scripts/benchmark.py            # Run all benchmarks
    python scripts/benchmark.py --config   # Show current benchmark configuration
    python scripts/benchmark.py --quiet    # Only show the final table
"""

import argparse
import sys
import time
from typing import Any, Callable, Dict

# Add the project root to the Python path
sys.path.insert(0, ".")

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hscstore import (
    MemoryStorage,
    PersistOptions,
    computed_middleware,
    create_persist_store,
    create_store,
    time_travel_middleware,
)

# Configuration constants - adjust these to change benchmark behavior
TIME_LIMIT_SECONDS = 0.5  # Maximum time allowed per run
STARTING_N = 10  # Starting workload
SCALE_FACTOR = 1.5  # How much to multiply N by each iteration


def _counter(api):
    return {
        "count": 0,
        "increase": lambda: api.set_state(lambda s: {"count": s["count"] + 1}),
    }


def _store_with_fanout(n: int):
    """A store with n computed values all depending on ``count``."""
    computed = {f"value_{i}": (lambda s, i=i: s["count"] + i) for i in range(n)}
    depends_on = {name: ["count"] for name in computed}
    return create_store(_counter, [computed_middleware(computed, depends_on)])


class StoreBenchmark:
    """Rich-formatted display for hscstore benchmarks."""

    def __init__(self, quiet: bool = False):
        self.console = Console()
        self.quiet = quiet
        self.results: Dict[str, Dict[str, Any]] = {}

    def run_benchmarks(self):
        start_time = time.time()
        self._display_header()

        self._run("updates", "State Updates", self._updates)
        self._run("cache_hits", "Computed Cache Hits", self._cache_hits)
        self._run("recompute", "Computed Fan-out Recompute", self._recompute)
        self._run("history", "History Recording", self._history)
        self._run("persist", "Persisted Writes", self._persisted_writes)

        self._display_final_results(start_time)

    def _updates(self, n: int) -> float:
        store = create_store(_counter)
        increase = store.get_state()["increase"]
        start = time.perf_counter()
        for _ in range(n):
            increase()
        elapsed = time.perf_counter() - start
        assert store.get_state()["count"] == n
        return elapsed

    def _cache_hits(self, n: int) -> float:
        store = _store_with_fanout(1)
        cache = store.get_state()["_computed"]
        cache.get("value_0")
        start = time.perf_counter()
        for _ in range(n):
            cache.get("value_0")
        elapsed = time.perf_counter() - start
        assert cache.stats["computations"] == 1
        return elapsed

    def _recompute(self, n: int) -> float:
        store = _store_with_fanout(n)
        cache = store.get_state()["_computed"]
        cache.recompute_all()
        store.set_state({"count": 100})
        start = time.perf_counter()
        for i in range(n):
            cache.get(f"value_{i}")
        elapsed = time.perf_counter() - start
        assert cache.get(f"value_{n - 1}") == 100 + n - 1
        return elapsed

    def _history(self, n: int) -> float:
        store = create_store(_counter, [time_travel_middleware(max_history=1000)])
        increase = store.get_state()["increase"]
        start = time.perf_counter()
        for _ in range(n):
            increase()
        elapsed = time.perf_counter() - start
        assert store.get_state()["_time_travel"].get_history_length() == min(n + 1, 1000)
        return elapsed

    def _persisted_writes(self, n: int) -> float:
        storage = MemoryStorage()
        store = create_persist_store(_counter, PersistOptions(name="bench", storage=storage))
        store.mount()
        increase = store.get_state()["increase"]
        start = time.perf_counter()
        for _ in range(n):
            increase()
        elapsed = time.perf_counter() - start
        assert f'"count": {n}' in storage.get_item("bench")
        return elapsed

    def _run(self, key: str, name: str, operation: Callable[[int], float]):
        if not self.quiet:
            self.console.print(f"[yellow]Running {name}...[/yellow]")
        result = self._run_adaptive_benchmark(operation)
        self.results[key] = {"name": name, **result}
        if not self.quiet:
            self.console.print(
                f"[green]✓[/green] {name}: {result['operations_per_second']:,.0f} ops/sec "
                f"({result['max_n']} operations)"
            )

    def _run_adaptive_benchmark(self, operation: Callable[[int], float]) -> Dict[str, Any]:
        """Scale the workload until one run reaches the time limit."""
        n = STARTING_N
        while True:
            operation_time = max(operation(n), 1e-9)
            result = {
                "max_n": n,
                "operation_time": operation_time,
                "operations_per_second": n / operation_time,
            }
            if operation_time >= TIME_LIMIT_SECONDS:
                return result
            n = int(n * SCALE_FACTOR)

    def _display_header(self):
        header = Panel(
            Align.center("hscstore Performance Benchmark Suite"),
            title="hscstore Benchmarks",
            border_style="blue",
        )
        self.console.print(header)
        self.console.print()

    def _display_final_results(self, start_time: float):
        elapsed = time.time() - start_time

        table = Table(title="Final Benchmark Results")
        table.add_column("Benchmark", style="cyan", no_wrap=True)
        table.add_column("Max Workload", style="magenta")
        table.add_column("Performance", style="green", justify="right")
        table.add_column("Latency", style="yellow", justify="right")

        for result in self.results.values():
            latency_us = result["operation_time"] / max(result["max_n"], 1) * 1e6
            table.add_row(
                result["name"],
                f"{result['max_n']:,} ops",
                f"{result['operations_per_second'] / 1000:.1f}K ops/sec",
                f"{latency_us:.2f}μs",
            )

        self.console.print()
        self.console.print(table)
        self.console.print()
        self.console.print(f"[dim]Benchmark completed in {elapsed:.2f} seconds[/dim]")


def print_config():
    print("hscstore Benchmark Configuration:")
    print(f"  TIME_LIMIT_SECONDS: {TIME_LIMIT_SECONDS}")
    print(f"  STARTING_N: {STARTING_N}")
    print(f"  SCALE_FACTOR: {SCALE_FACTOR}")


def main():
    parser = argparse.ArgumentParser(description="hscstore Performance Benchmarks")
    parser.add_argument(
        "--config", action="store_true", help="Show current benchmark configuration"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output, show only final results",
    )
    args = parser.parse_args()

    if args.config:
        print_config()
        return

    if not args.quiet:
        print_config()
        print()

    StoreBenchmark(quiet=args.quiet).run_benchmarks()


if __name__ == "__main__":
    main()
