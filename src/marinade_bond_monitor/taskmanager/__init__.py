"""Task manager — interval scheduling of background jobs.

Provides ``TaskManager`` for the periodic bond poll. Jobs run as
``asyncio`` tasks on the same loop as the HTTP server, so a slow poll
never blocks a scrape: the only waiting a poll does is awaiting the CLI
subprocess.
"""

from __future__ import annotations

from marinade_bond_monitor.taskmanager.manager import CronJob, TaskManager

__all__ = ["CronJob", "TaskManager"]
