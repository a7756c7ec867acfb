"""Bond collector — one poll cycle over every monitored account.

Each cycle invokes the CLI once per account, parses the output and builds
a brand-new ``MetricsSnapshot`` that is published to the store in a
single swap once every account has been handled. Failures are per
account: they are logged, counted and turned into a failed
``BondSnapshot``; they never abort the cycle.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from marinade_bond_monitor.bonds.models import BondSnapshot, MetricsSnapshot
from marinade_bond_monitor.bonds.parser import parse_bond_output
from marinade_bond_monitor.errors.bond_errors import BondParseError, CommandError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from marinade_bond_monitor.bonds.command import CommandRunner
    from marinade_bond_monitor.bonds.models import AccountTarget, FieldSpec
    from marinade_bond_monitor.metrics.collector import ExporterMetrics
    from marinade_bond_monitor.metrics.store import MetricsStore

logger = logging.getLogger(__name__)


class BondCollector:
    """Polls the bonds CLI for every target and publishes the results.

    Usage::

        collector = BondCollector(config.targets(), runner, store, ...)
        snapshot = await collector.poll_once()
    """

    def __init__(
        self,
        targets: Sequence[AccountTarget],
        runner: CommandRunner,
        store: MetricsStore,
        *,
        fields: Sequence[FieldSpec],
        build_args: Callable[[str], list[str]],
        timeout: float,
        concurrency: int = 1,
        verify_address: bool = True,
        metrics: ExporterMetrics | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._targets = tuple(targets)
        self._runner = runner
        self._store = store
        self._fields = tuple(fields)
        self._build_args = build_args
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._verify_address = verify_address
        self._metrics = metrics
        self._clock = clock

    @property
    def targets(self) -> tuple[AccountTarget, ...]:
        return self._targets

    async def fetch(self, target: AccountTarget) -> tuple[dict[str, float], dict[str, str]]:
        """Run the CLI for *target* and parse its output.

        Raises:
            CommandError: The CLI failed, timed out or exited non-zero.
            BondParseError: The output could not be parsed.
        """
        args = self._build_args(target.address)
        if self._metrics:
            with self._metrics.track_command():
                result = await self._runner.run(args, timeout=self._timeout)
        else:
            result = await self._runner.run(args, timeout=self._timeout)

        if not result.ok:
            raise CommandError.from_exit(result.returncode, result.stdout, result.stderr)
        return parse_bond_output(
            result.stdout,
            target,
            self._fields,
            verify_address=self._verify_address,
        )

    async def _poll_target(
        self, target: AccountTarget, previous: BondSnapshot | None
    ) -> BondSnapshot:
        async with self._semaphore:
            try:
                values, labels = await self.fetch(target)
            except (CommandError, BondParseError) as exc:
                reason = exc.code
                error = exc.message
                logger.warning("Failed to get bond data for address %s: %s", target.address, error)
            except Exception as exc:
                reason = "error"
                error = f"{type(exc).__name__}: {exc}"
                logger.exception("Unexpected error fetching bond data for %s", target.address)
            else:
                logger.debug("Updated bond data for %s", target.address)
                return BondSnapshot.success(target, values, labels, polled_at=self._clock())

        if self._metrics:
            self._metrics.record_failure(target.address, reason)
        return BondSnapshot.failure(
            target, error, polled_at=self._clock(), previous=previous
        )

    async def poll_once(self) -> MetricsSnapshot:
        """Poll every target once and publish the resulting snapshot."""
        logger.debug("Retrieving bond data for %d addresses", len(self._targets))
        if self._metrics:
            with self._metrics.track_poll():
                snapshot = await self._poll_all()
        else:
            snapshot = await self._poll_all()

        self._store.publish(snapshot)
        updated = sum(1 for bond in snapshot.entries.values() if bond.ok)
        logger.info("Fetched data for %d/%d addresses", updated, len(self._targets))
        return snapshot

    async def _poll_all(self) -> MetricsSnapshot:
        current = self._store.current()
        results = await asyncio.gather(
            *(self._poll_target(t, current.get(t)) for t in self._targets)
        )
        return MetricsSnapshot(
            entries=dict(zip(self._targets, results, strict=True)),
            cycle=current.cycle + 1,
            completed_at=self._clock(),
        )
