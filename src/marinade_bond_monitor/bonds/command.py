"""External command execution — the only blocking step of a poll.

``CommandRunner`` is the seam between the collector and the operating
system: production code uses ``SubprocessRunner``; tests substitute a fake
that returns canned ``CommandResult`` objects or raises.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from marinade_bond_monitor.errors.bond_errors import CommandError, CommandTimeoutError

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of a finished process."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Capability: execute an external command, return its output or fail."""

    async def run(self, args: Sequence[str], *, timeout: float) -> CommandResult:
        """Run *args* and wait at most *timeout* seconds.

        Raises:
            CommandTimeoutError: The process did not finish in time.
            CommandError: The process could not be started.
        """
        ...


class SubprocessRunner:
    """Runs commands with ``asyncio.create_subprocess_exec`` (no shell)."""

    async def run(self, args: Sequence[str], *, timeout: float) -> CommandResult:
        if not args:
            raise CommandError("empty command line")
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CommandError(f"failed to start {args[0]!r}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            await self._kill(proc)
            raise CommandTimeoutError(timeout) from None
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        return CommandResult(
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        """Terminate a hung child and reap it so it does not linger as a zombie."""
        if proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()
        logger.debug("Killed pid %d", proc.pid)
