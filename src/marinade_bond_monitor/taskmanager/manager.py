"""Task manager lifecycle — start, stop, schedule.

The ``TaskManager`` owns a set of ``CronJob`` definitions and runs them
on asyncio background tasks.  Each job has a ``period`` (seconds) and a
handler coroutine.  The period is measured from the end of one run to the
start of the next, so runs of a job never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CronJob:
    """A recurring background job."""

    handler: Callable[[], Awaitable[object]]
    period: float  # seconds
    name: str = ""
    run_immediately: bool = False


class TaskManager:
    """Manages asyncio-based interval jobs.

    Usage::

        tm = TaskManager()
        tm.register("poll_bonds", CronJob(handler=collector.poll_once, period=60))
        await tm.start()
        ...
        await tm.stop()
    """

    def __init__(self) -> None:
        self._jobs: dict[str, CronJob] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the task manager is currently running."""
        return self._running

    @property
    def jobs(self) -> dict[str, CronJob]:
        """Registered jobs (name → CronJob)."""
        return dict(self._jobs)

    def register(self, name: str, job: CronJob) -> None:
        """Register a job.  Can be called before or after start().

        If the manager is already running the job is started immediately.
        """
        if job.period <= 0:
            raise ValueError(f"job {name!r} period must be positive, got {job.period}")
        resolved = CronJob(
            handler=job.handler,
            period=job.period,
            name=name,
            run_immediately=job.run_immediately,
        )
        self._jobs[name] = resolved
        if self._running:
            self._tasks[name] = asyncio.create_task(self._run_loop(resolved), name=name)

    async def start(self) -> None:
        """Start all registered jobs."""
        if self._running:
            return
        self._running = True
        for name, job in self._jobs.items():
            self._tasks[name] = asyncio.create_task(self._run_loop(job), name=name)
        logger.info("TaskManager started with %d jobs", len(self._jobs))

    async def stop(self) -> None:
        """Cancel all running jobs and wait for cleanup."""
        if not self._running:
            return
        self._running = False
        for task in self._tasks.values():
            task.cancel()
        results = await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        for r in results:
            if isinstance(r, Exception) and not isinstance(r, asyncio.CancelledError):
                logger.error("Task error during shutdown: %s", r)
        self._tasks.clear()
        logger.info("TaskManager stopped")

    async def _run_once(self, job: CronJob) -> None:
        try:
            await job.handler()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Job %r failed", job.name or "unnamed")

    async def _run_loop(self, job: CronJob) -> None:
        """Execute *job*, then sleep *job.period* seconds, until stopped."""
        if job.run_immediately:
            await self._run_once(job)
        while self._running:
            logger.debug("Job %r sleeping for %.1fs", job.name, job.period)
            await asyncio.sleep(job.period)
            if not self._running:
                break
            await self._run_once(job)
