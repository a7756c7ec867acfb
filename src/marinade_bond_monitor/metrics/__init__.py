"""Metrics — snapshot store and Prometheus exposition."""

from __future__ import annotations

from marinade_bond_monitor.metrics.collector import ExporterMetrics, MetricsCollector
from marinade_bond_monitor.metrics.exporter import BondSnapshotCollector
from marinade_bond_monitor.metrics.store import MetricsStore

__all__ = ["BondSnapshotCollector", "ExporterMetrics", "MetricsCollector", "MetricsStore"]
