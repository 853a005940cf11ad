from __future__ import annotations

"""Configuration doctor for the eVaka version monitor.

Validates settings and the instance list without any network access and
prints the monitored instances. Useful as a CI step before the scheduled run.

Usage:
    python script/verify_config.py
    python script/verify_config.py --json
"""

import argparse
import json
import sys
from typing import Sequence

from loguru import logger
from rich.console import Console
from rich.table import Table
from rich.text import Text

from evaka_monitor.config import ConfigurationError, get_settings
from evaka_monitor.instances import load_instances
from evaka_monitor.preflight import CheckResult, Status, run_checks

console = Console()
log = logger.bind(module="script.verify_config")


def _status_text(status: Status) -> Text:
    styles = {"ok": "bold green", "warn": "bold yellow", "fail": "bold red"}
    return Text(status.upper(), style=styles.get(status, "bold"))


def _render_checks(results: Sequence[CheckResult]) -> None:
    table = Table(title="Version monitor configuration", show_lines=False)
    table.add_column("Check", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Details")
    for item in results:
        table.add_row(item.name, _status_text(item.status), item.details)
    console.print(table)


def _render_instances(instances_file: str | None) -> None:
    try:
        instances = load_instances(instances_file)
    except ConfigurationError:
        return
    table = Table(title="Monitored instances", show_lines=False)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Domain")
    table.add_column("Repository")
    table.add_column("Kind", justify="center")
    for instance in instances:
        table.add_row(instance.name, instance.domain, instance.repository, instance.kind.value)
    console.print(table)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate the eVaka version monitor configuration.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat warnings as failures (non-zero exit code).",
    )
    parser.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print results as JSON (useful for CI).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_arg_parser().parse_args(list(argv) if argv is not None else None)

    try:
        settings = get_settings()
    except ConfigurationError as exc:
        console.print(
            "[bold red]Failed to load settings[/] "
            f"reason={exc}. Ensure your environment variables are valid.",
        )
        log.exception("Settings load failed")
        return 1

    results = run_checks(settings)

    if args.json_output:
        payload = [{"name": r.name, "status": r.status, "details": r.details} for r in results]
        console.print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        _render_checks(results)
        _render_instances(settings.instances_file)

    ok = sum(1 for r in results if r.status == "ok")
    warn = sum(1 for r in results if r.status == "warn")
    fail = sum(1 for r in results if r.status == "fail")
    summary = f"ok={ok} warn={warn} fail={fail}"
    if fail:
        console.print(f"[bold red]Configuration check failed[/] {summary}")
        return 1
    if warn and args.strict:
        console.print(f"[bold yellow]Configuration warnings (strict)[/] {summary}")
        return 2
    console.print(f"[bold green]Configuration check passed[/] {summary}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
