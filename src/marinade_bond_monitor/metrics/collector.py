"""Metrics collector — registry ownership and the monitor's own metrics.

Self-observability of the poll loop:
- ``<prefix>_poll_duration_seconds`` histogram — one observation per cycle
- ``<prefix>_command_duration_seconds`` histogram — one per CLI invocation
- ``<prefix>_fetch_failures_total`` counter-vec (account, reason)
- ``<prefix>_last_poll_timestamp_seconds`` gauge
- ``<prefix>_poll_cycles_total`` counter
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator

    from prometheus_client.registry import Collector


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`ExporterMetrics` for the poll-loop tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)

    def register(self, collector: Collector) -> None:
        """Register a custom collector (see ``BondSnapshotCollector``)."""
        self._registry.register(collector)


class ExporterMetrics:
    """Tracks the health of the poll loop itself."""

    def __init__(self, collector: MetricsCollector | None = None, *, prefix: str) -> None:
        self._collector = collector or MetricsCollector()

        self._poll_duration = self._collector.histogram(
            f"{prefix}_poll_duration_seconds",
            "Duration of a full poll cycle over all accounts",
        )
        self._command_duration = self._collector.histogram(
            f"{prefix}_command_duration_seconds",
            "Duration of a single show-bond CLI invocation",
        )
        self._failures = self._collector.counter(
            f"{prefix}_fetch_failures",
            "Failed bond data fetches by account and reason",
            ("account", "reason"),
        )
        self._cycles = self._collector.counter(
            f"{prefix}_poll_cycles",
            "Completed poll cycles",
        )
        self._last_poll = self._collector.gauge(
            f"{prefix}_last_poll_timestamp_seconds",
            "Unix time the last poll cycle completed",
        )

    @property
    def collector(self) -> MetricsCollector:
        return self._collector

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def record_failure(self, account: str, reason: str) -> None:
        """Count one failed fetch for *account*."""
        self._failures.labels(account=account, reason=reason).inc()

    @contextmanager
    def track_command(self) -> Iterator[None]:
        """Track the duration of one CLI invocation."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._command_duration.observe(time.monotonic() - start)

    @contextmanager
    def track_poll(self) -> Iterator[None]:
        """Track the duration of a poll cycle and record its completion time."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._poll_duration.observe(time.monotonic() - start)
            self._cycles.inc()
            self._last_poll.set(time.time())
