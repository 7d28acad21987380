"""
Async-first flush metrics for agentkit.

Implements minimal Prometheus-compatible counters and a histogram for the
batched DA logging path.

Design goals:
- Pure async/await, no blocking I/O
- Zero global state; instances are adapter-scoped
- Safe no-op export when metrics are disabled, while still tracking
  in-memory counters for tests
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class FlushMetrics:
    """Captured runtime metrics for quick assertions in tests."""

    batches_submitted: int = 0
    records_submitted: int = 0
    submit_failures: int = 0
    records_requeued: int = 0
    records_dead_lettered: int = 0


class MetricsCollector:
    """Adapter-scoped async metrics collector."""

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = asyncio.Lock()
        self._state = FlushMetrics()

        self._c_batches: Any | None = None
        self._c_records: Any | None = None
        self._c_failures: Any | None = None
        self._c_requeued: Any | None = None
        self._c_dead_lettered: Any | None = None
        self._h_flush_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry avoids duplicate registration across adapters
            self._registry = CollectorRegistry()
            self._c_batches = Counter(
                "agentkit_batches_submitted_total",
                "Total number of batches accepted by the remote store",
                ["store"],
                registry=self._registry,
            )
            self._c_records = Counter(
                "agentkit_records_submitted_total",
                "Total number of log records delivered inside accepted batches",
                ["store"],
                registry=self._registry,
            )
            self._c_failures = Counter(
                "agentkit_submit_failures_total",
                "Total number of failed or timed-out submit calls",
                ["store"],
                registry=self._registry,
            )
            self._c_requeued = Counter(
                "agentkit_records_requeued_total",
                "Total number of records returned to the buffer after a failure",
                registry=self._registry,
            )
            self._c_dead_lettered = Counter(
                "agentkit_records_dead_lettered_total",
                "Total number of records dropped after exhausting flush attempts",
                registry=self._registry,
            )
            self._h_flush_latency = Histogram(
                "agentkit_submit_seconds",
                "Latency of a single submit call",
                buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    async def record_batch_submitted(
        self,
        *,
        store: str,
        batch_size: int,
        latency_seconds: float | None = None,
    ) -> None:
        async with self._lock:
            self._state.batches_submitted += 1
            self._state.records_submitted += batch_size
        if not self._enabled:
            return
        if self._c_batches is not None:
            self._c_batches.labels(store=store).inc()
        if self._c_records is not None:
            self._c_records.labels(store=store).inc(batch_size)
        if latency_seconds is not None and self._h_flush_latency is not None:
            self._h_flush_latency.observe(latency_seconds)

    async def record_submit_failure(self, *, store: str, requeued: int) -> None:
        async with self._lock:
            self._state.submit_failures += 1
            self._state.records_requeued += requeued
        if not self._enabled:
            return
        if self._c_failures is not None:
            self._c_failures.labels(store=store).inc()
        if self._c_requeued is not None and requeued:
            self._c_requeued.inc(requeued)

    async def record_dead_lettered(self, count: int) -> None:
        async with self._lock:
            self._state.records_dead_lettered += count
        if self._enabled and self._c_dead_lettered is not None:
            self._c_dead_lettered.inc(count)

    async def snapshot(self) -> FlushMetrics:
        # Lightweight copy without exposing internals
        async with self._lock:
            return FlushMetrics(
                batches_submitted=self._state.batches_submitted,
                records_submitted=self._state.records_submitted,
                submit_failures=self._state.submit_failures,
                records_requeued=self._state.records_requeued,
                records_dead_lettered=self._state.records_dead_lettered,
            )
