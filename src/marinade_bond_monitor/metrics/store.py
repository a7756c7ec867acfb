"""Metrics store — holds the snapshot currently served to scrapes.

One writer (the collector) and many readers (``/metrics`` requests). The
store holds a single reference to an immutable ``MetricsSnapshot``; the
writer swaps the reference, readers take it once and work from that copy.
A reader therefore sees either the whole previous cycle or the whole new
one, never a mix.
"""

from __future__ import annotations

import threading

from marinade_bond_monitor.bonds.models import MetricsSnapshot


class MetricsStore:
    """Atomically swapped holder of the latest ``MetricsSnapshot``."""

    def __init__(self, initial: MetricsSnapshot | None = None) -> None:
        self._snapshot = initial or MetricsSnapshot()
        self._write_lock = threading.Lock()

    def current(self) -> MetricsSnapshot:
        """Return the snapshot in effect right now. Never blocks."""
        return self._snapshot

    def publish(self, snapshot: MetricsSnapshot) -> MetricsSnapshot:
        """Replace the served snapshot and return the one it replaced.

        Raises:
            ValueError: If *snapshot* is older than the one being served.
        """
        with self._write_lock:
            previous = self._snapshot
            if snapshot.cycle < previous.cycle:
                raise ValueError(
                    f"refusing to publish cycle {snapshot.cycle} over cycle {previous.cycle}"
                )
            self._snapshot = snapshot
            return previous
