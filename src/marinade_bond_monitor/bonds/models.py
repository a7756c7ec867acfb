"""Bond data models — monitored targets, per-account poll results, snapshots.

All models are immutable. A poll cycle builds fresh ``BondSnapshot``
instances and a fresh ``MetricsSnapshot``; nothing is updated in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


def _frozen(mapping: Mapping | None) -> Mapping:
    if mapping is None:
        return MappingProxyType({})
    if isinstance(mapping, MappingProxyType):
        return mapping
    return MappingProxyType(dict(mapping))


# ---------------------------------------------------------------------------
# Configuration-derived models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountTarget:
    """A bond or vote account to monitor.

    Attributes:
        address: Bond account or vote account address passed to the CLI.
        name: Human-friendly label exported as the ``name`` metric label.
    """

    address: str
    name: str = ""


@dataclass(frozen=True)
class FieldSpec:
    """Maps one field of the CLI's JSON output to a metric.

    Attributes:
        source: Dotted key path into the JSON object (``voteAccount.commission``).
        metric: Metric name suffix appended to the configured prefix.
        description: HELP text of the metric family.
        required: Whether a missing field fails the parse.
    """

    source: str
    metric: str
    description: str = ""
    required: bool = True


# ---------------------------------------------------------------------------
# Poll results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BondSnapshot:
    """Result of polling one account in one cycle.

    A failed snapshot carries the values of the last successful poll (if
    any) together with ``last_success`` so the exporter can decide whether
    they are still fresh enough to publish.
    """

    target: AccountTarget
    ok: bool
    values: Mapping[str, float] = field(default_factory=dict)
    labels: Mapping[str, str] = field(default_factory=dict)
    polled_at: float = 0.0
    last_success: float | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", _frozen(self.values))
        object.__setattr__(self, "labels", _frozen(self.labels))

    @classmethod
    def success(
        cls,
        target: AccountTarget,
        values: Mapping[str, float],
        labels: Mapping[str, str],
        *,
        polled_at: float,
    ) -> BondSnapshot:
        """Snapshot for a successful poll."""
        return cls(
            target=target,
            ok=True,
            values=values,
            labels=labels,
            polled_at=polled_at,
            last_success=polled_at,
        )

    @classmethod
    def failure(
        cls,
        target: AccountTarget,
        error: str,
        *,
        polled_at: float,
        previous: BondSnapshot | None = None,
    ) -> BondSnapshot:
        """Snapshot for a failed poll, keeping the previous good values."""
        if previous is None or previous.last_success is None:
            return cls(target=target, ok=False, polled_at=polled_at, error=error)
        return cls(
            target=target,
            ok=False,
            values=previous.values,
            labels=previous.labels,
            polled_at=polled_at,
            last_success=previous.last_success,
            error=error,
        )

    def is_fresh(self, now: float, stale_after: float) -> bool:
        """Whether ``values`` may be exported at time *now*."""
        if self.ok:
            return True
        if self.last_success is None or stale_after <= 0:
            return False
        return now - self.last_success <= stale_after


@dataclass(frozen=True)
class MetricsSnapshot:
    """The latest ``BondSnapshot`` of every account, published as one unit.

    Attributes:
        entries: Account → latest snapshot (read-only mapping).
        cycle: Number of completed poll cycles; 0 before the first poll.
        completed_at: Unix time the cycle finished, ``None`` before the first poll.
    """

    entries: Mapping[AccountTarget, BondSnapshot] = field(default_factory=dict)
    cycle: int = 0
    completed_at: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", _frozen(self.entries))

    def get(self, target: AccountTarget) -> BondSnapshot | None:
        return self.entries.get(target)
