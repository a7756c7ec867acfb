"""Application entry point for the bond monitor.

Usage: marinade-bond-monitor <config_path>
"""

from __future__ import annotations

import logging
import os
import sys

import uvicorn

from marinade_bond_monitor.api.app import create_app
from marinade_bond_monitor.config.settings import MonitorConfig
from marinade_bond_monitor.errors.monitor_errors import ConfigError

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _setup_logging(level: str) -> None:
    if level not in logging.getLevelNamesMapping():
        level = "INFO"
    logging.basicConfig(level=level, format=_LOG_FORMAT)


def main(argv: list[str] | None = None) -> None:
    """Load the config and serve ``/metrics`` until interrupted."""
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: marinade-bond-monitor <config_path>", file=sys.stderr)
        sys.exit(2)

    _setup_logging(os.getenv("BOND_MONITOR_LOG_LEVEL", "INFO").upper())
    try:
        config = MonitorConfig.from_file(args[0])
    except ConfigError as exc:
        logger.error("%s", exc.message)
        sys.exit(1)
    logging.getLogger().setLevel(config.log_level)

    app = create_app(config=config)
    logger.info("Starting metrics server on %s", config.listen_addr)
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
