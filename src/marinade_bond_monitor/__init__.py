"""Marinade bond monitor — Prometheus exporter for validator bond data."""

from __future__ import annotations

__version__ = "0.1.0"
