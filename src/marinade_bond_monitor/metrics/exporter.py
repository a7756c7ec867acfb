"""Custom Prometheus collector rendering the current bond snapshot.

Metric families are rebuilt from ``MetricsStore.current()`` on every
scrape instead of being kept in long-lived ``Gauge`` objects, so an
account that stops reporting disappears from the output rather than
freezing at its last value.

Per account (labels ``account``, ``name``):
- ``<prefix>_up`` — 1 if the last poll succeeded, 0 otherwise
- ``<prefix>_<field>`` — one family per configured field
- ``<prefix>_info`` — 1, carrying bond/vote account identity labels
- ``<prefix>_last_success_timestamp_seconds``
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client.core import GaugeMetricFamily

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from prometheus_client.metrics_core import Metric

    from marinade_bond_monitor.bonds.models import FieldSpec
    from marinade_bond_monitor.metrics.store import MetricsStore

_LABELS = ["account", "name"]
_INFO_LABELS = ["bond_account", "vote_account", "node_pubkey"]


class BondSnapshotCollector:
    """Yields bond metric families from one consistent snapshot per scrape."""

    def __init__(
        self,
        store: MetricsStore,
        fields: Sequence[FieldSpec],
        *,
        prefix: str,
        stale_after: float = 0.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._fields = tuple(fields)
        self._prefix = prefix
        self._stale_after = stale_after
        self._clock = clock

    def describe(self) -> list[Metric]:
        # Families depend on the snapshot; nothing to pre-register.
        return []

    def collect(self) -> Iterator[Metric]:
        snapshot = self._store.current()
        now = self._clock()
        p = self._prefix

        up = GaugeMetricFamily(
            f"{p}_up", "Whether the last bond data fetch succeeded", labels=_LABELS
        )
        last_success = GaugeMetricFamily(
            f"{p}_last_success_timestamp_seconds",
            "Unix time of the last successful bond data fetch",
            labels=_LABELS,
        )
        info = GaugeMetricFamily(
            f"{p}_info", "Bond identity labels", labels=_LABELS + _INFO_LABELS
        )
        families = {
            spec.metric: GaugeMetricFamily(
                f"{p}_{spec.metric}", spec.description or spec.source, labels=_LABELS
            )
            for spec in self._fields
        }

        for target, bond in snapshot.entries.items():
            key = [target.address, target.name]
            up.add_metric(key, 1.0 if bond.ok else 0.0)
            if bond.last_success is not None:
                last_success.add_metric(key, bond.last_success)
            if not bond.is_fresh(now, self._stale_after):
                continue
            for metric, value in bond.values.items():
                family = families.get(metric)
                if family is not None:
                    family.add_metric(key, value)
            if bond.labels:
                info.add_metric(key + [bond.labels.get(n, "") for n in _INFO_LABELS], 1.0)

        yield up
        yield last_success
        yield info
        yield from families.values()
