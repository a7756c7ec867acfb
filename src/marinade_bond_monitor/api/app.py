"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from marinade_bond_monitor import __version__
from marinade_bond_monitor.bonds.collector import BondCollector
from marinade_bond_monitor.bonds.command import SubprocessRunner
from marinade_bond_monitor.errors.monitor_errors import BondMonitorError
from marinade_bond_monitor.metrics.collector import ExporterMetrics
from marinade_bond_monitor.metrics.exporter import BondSnapshotCollector
from marinade_bond_monitor.metrics.store import MetricsStore
from marinade_bond_monitor.taskmanager.manager import CronJob, TaskManager

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from marinade_bond_monitor.bonds.command import CommandRunner
    from marinade_bond_monitor.config.settings import MonitorConfig

logger = logging.getLogger(__name__)

METRICS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"
POLL_JOB = "poll_bonds"


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle hooks.

    Starts the bond poll loop on startup and cancels it on exit.
    """
    config: MonitorConfig = app.state.config
    tasks = TaskManager()
    tasks.register(
        POLL_JOB,
        CronJob(
            handler=app.state.collector.poll_once,
            period=config.fetch_interval,
            run_immediately=True,
        ),
    )
    app.state.tasks = tasks

    await tasks.start()
    logger.info(
        "Monitoring %d addresses every %.1fs",
        len(app.state.collector.targets),
        config.fetch_interval,
    )
    try:
        yield
    finally:
        await tasks.stop()
        logger.info("Bond monitor shut down")


def create_app(
    *,
    config: MonitorConfig,
    runner: CommandRunner | None = None,
    store: MetricsStore | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Loaded monitor configuration.
        runner: Command runner for the bonds CLI. Defaults to a real
            ``SubprocessRunner``.
        store: Snapshot store shared by the poller and ``/metrics``.
    """
    store = store or MetricsStore()
    runner = runner or SubprocessRunner()
    fields = config.metrics.field_specs()

    metrics = ExporterMetrics(prefix=config.metrics.prefix)
    metrics.collector.register(
        BondSnapshotCollector(
            store,
            fields,
            prefix=config.metrics.prefix,
            stale_after=config.stale_after,
        )
    )

    collector = BondCollector(
        config.targets(),
        runner,
        store,
        fields=fields,
        build_args=config.command_args,
        timeout=config.command_timeout,
        concurrency=config.concurrency,
        verify_address=config.verify_address,
        metrics=metrics,
    )

    app = FastAPI(
        title="marinade-bond-monitor",
        version=__version__,
        description="Prometheus exporter for Marinade validator bonds",
        lifespan=_lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # Shared state for lifespan and handlers
    app.state.config = config
    app.state.store = store
    app.state.metrics = metrics
    app.state.collector = collector

    # -- Error handler --
    @app.exception_handler(BondMonitorError)
    async def _monitor_error_handler(request: Request, exc: BondMonitorError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    @app.get("/metrics", include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        logger.debug("Handling metrics request")
        try:
            body = generate_latest(app.state.metrics.registry)
        except Exception as exc:
            logger.exception("Failed to encode metrics")
            raise BondMonitorError("Failed to encode metrics", code="encode") from exc
        return Response(content=body, media_type=METRICS_CONTENT_TYPE)

    return app
