"""Bonds — fetching and parsing validator bond data from the bonds CLI."""

from __future__ import annotations

from marinade_bond_monitor.bonds.collector import BondCollector
from marinade_bond_monitor.bonds.command import CommandResult, CommandRunner, SubprocessRunner
from marinade_bond_monitor.bonds.models import (
    AccountTarget,
    BondSnapshot,
    FieldSpec,
    MetricsSnapshot,
)
from marinade_bond_monitor.bonds.parser import parse_bond_output

__all__ = [
    "AccountTarget",
    "BondCollector",
    "BondSnapshot",
    "CommandResult",
    "CommandRunner",
    "FieldSpec",
    "MetricsSnapshot",
    "SubprocessRunner",
    "parse_bond_output",
]
