"""Run the eVaka version monitor once with logging configured from settings.

Usage:

    python script/run_monitor.py                 # resolve and report all instances
    python script/run_monitor.py --dry-run       # print instead of reporting
    python script/run_monitor.py --instance Oulu --report both

Log records go to stderr. When ``LOGS_DIR`` is set, each run also writes
``<LOGS_DIR>/logs/monitor/monitor-<timestamp>.log``.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Sequence

from loguru import logger
from rich.console import Console

from evaka_monitor.config import ConfigurationError, Settings, get_settings
from evaka_monitor.monitor import main as monitor_main

console = Console()
log = logger.bind(module="script.run_monitor")


class _HttpxToLoguru(logging.Handler):
    """Forward httpx warnings (the only stdlib logger the monitor uses) to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - thin wrapper
        logger.opt(exception=record.exc_info).log(record.levelname, record.getMessage())


def _run_log_file(settings: Settings) -> Path | None:
    if not settings.logs_base_dir:
        return None
    log_dir = Path(settings.logs_base_dir).expanduser() / "logs" / "monitor"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"monitor-{datetime.now():%Y%m%d-%H%M%S}.log"


def _configure_logging(settings: Settings) -> None:
    level = (settings.log_level or "INFO").upper()

    logger.remove()
    logger.add(sys.stderr, level=level, backtrace=False, diagnose=False)

    log_file = _run_log_file(settings)
    if log_file is not None:
        logger.add(log_file, level=level, backtrace=False, diagnose=False)
        console.log(f"[green]Monitor logs[/] -> {log_file}")

    # httpx logs every request at INFO.
    httpx_logger = logging.getLogger("httpx")
    httpx_logger.handlers = [_HttpxToLoguru()]
    httpx_logger.setLevel(logging.WARNING)
    httpx_logger.propagate = False

    log.info("Monitor logging initialised at level {}", level)


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        console.log(f"[bold red]Configuration error[/] {exc}")
        return 2
    _configure_logging(settings)
    return int(monitor_main(argv, settings=settings))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
