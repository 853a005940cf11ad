"""Batch orchestrator: resolve every instance concurrently and report the result."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from loguru import logger
from rich.console import Console

from evaka_monitor.clients.github import GitHubClient
from evaka_monitor.clients.status import StatusClient
from evaka_monitor.config import ConfigurationError, ReportMode, Settings, get_settings
from evaka_monitor.instances import filter_instances, load_instances
from evaka_monitor.models import InstanceConfig, VersionInfo
from evaka_monitor.reporting.datadog import DatadogReporter
from evaka_monitor.resolver import VersionResolver

console = Console()
log = logger.bind(module="monitor")

__all__ = ["BatchResult", "InstanceOutcome", "VersionMonitor", "main", "run_from_settings"]


class Reporter(Protocol):
    async def report(self, info: VersionInfo, mode: ReportMode = "event") -> None: ...


@dataclass(frozen=True, slots=True)
class InstanceOutcome:
    name: str
    success: bool
    error: str | None = None
    version: VersionInfo | None = None


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Aggregate outcome of one monitoring run."""

    outcomes: tuple[InstanceOutcome, ...]

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def ok(self) -> bool:
        return self.failed == 0


class VersionMonitor:
    """Resolve and report every instance as an independent asyncio task."""

    def __init__(
        self,
        *,
        resolve: Callable[[InstanceConfig], Awaitable[VersionInfo]],
        reporter: Reporter | None = None,
        dry_run: bool = False,
        report_mode: ReportMode = "event",
        console: Console | None = None,
    ) -> None:
        if reporter is None and not dry_run:
            raise ConfigurationError("A reporter is required unless running in dry-run mode.")
        self.resolve = resolve
        self.reporter = reporter
        self.dry_run = bool(dry_run)
        self.report_mode = report_mode
        self.console = console or Console()

    async def process_instance(self, instance: InstanceConfig) -> InstanceOutcome:
        try:
            info = await self.resolve(instance)
            if self.dry_run:
                self._print_dry_run(info)
            else:
                assert self.reporter is not None
                await self.reporter.report(info, self.report_mode)
                self.console.log(f"[green]✓[/] {instance.name}: sent to Datadog")
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            self.console.log(f"[bold red]✗[/] {instance.name}: {reason}")
            log.opt(exception=exc).warning("Instance {} failed: {}", instance.name, reason)
            return InstanceOutcome(name=instance.name, success=False, error=reason)
        return InstanceOutcome(name=instance.name, success=True, version=info)

    def _print_dry_run(self, info: VersionInfo) -> None:
        custom, core = info.customization, info.core
        self.console.log(f"[cyan][DRY_RUN][/] {info.instance.name}:")
        self.console.log(f"  Customization: {custom.short_sha} - {custom.message}")
        self.console.log(f"  Core: {core.short_sha} - {core.message}")

    async def run(self, instances: Sequence[InstanceConfig]) -> BatchResult:
        """Process all instances concurrently and wait for every one to settle."""

        suffix = " (DRY RUN)" if self.dry_run else ""
        self.console.log(
            f"[bold green]eVaka Version Monitor[/] processing {len(instances)} instances{suffix}"
        )
        results = await asyncio.gather(
            *(self.process_instance(instance) for instance in instances),
            return_exceptions=True,
        )

        outcomes: list[InstanceOutcome] = []
        for instance, result in zip(instances, results):
            if isinstance(result, BaseException):
                # process_instance captures Exception; this covers cancellation.
                outcomes.append(InstanceOutcome(name=instance.name, success=False, error=repr(result)))
            else:
                outcomes.append(result)

        batch = BatchResult(outcomes=tuple(outcomes))
        self.console.log(
            f"[bold magenta]Completed[/] {batch.succeeded} succeeded, {batch.failed} failed"
        )
        log.info("Batch finished: succeeded={} failed={}", batch.succeeded, batch.failed)
        return batch


async def run_from_settings(
    settings: Settings,
    *,
    instance_names: Sequence[str] | None = None,
    console: Console | None = None,
) -> BatchResult:
    """Wire clients, resolver and reporter from `settings` and run one batch.

    Raises:
        ConfigurationError: Before any network activity, when reporting is
            enabled without an API key or the instance list is invalid.
    """

    instances = filter_instances(load_instances(settings.instances_file), instance_names)
    reporter = None if settings.dry_run else DatadogReporter.from_settings(settings)
    status = StatusClient(timeout_seconds=settings.http_timeout_seconds)
    github = GitHubClient.from_settings(settings)
    resolver = VersionResolver.from_settings(settings, status=status, github=github)
    monitor = VersionMonitor(
        resolve=resolver.resolve,
        reporter=reporter,
        dry_run=settings.dry_run,
        report_mode=settings.report_mode,
        console=console,
    )

    async with status.http, github.http:
        if reporter is None:
            return await monitor.run(instances)
        async with reporter.http:
            return await monitor.run(instances)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve deployed eVaka versions and report them to Datadog.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print resolved versions instead of sending them (overrides DRY_RUN).",
    )
    parser.add_argument(
        "--report",
        choices=("event", "log", "both"),
        default=None,
        help="Datadog payload(s) to send (overrides REPORT_MODE).",
    )
    parser.add_argument(
        "--instance",
        action="append",
        dest="instances",
        metavar="NAME",
        help="Only process the named instance (repeatable).",
    )
    parser.add_argument(
        "--instances-file",
        default=None,
        help="JSON file listing instances (overrides INSTANCES_FILE).",
    )
    return parser


def main(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> int:
    """CLI entrypoint; returns 0 when every instance succeeded."""

    args = _build_parser().parse_args(argv)
    overrides: dict[str, object] = {}
    if args.dry_run:
        overrides["dry_run"] = True
    if args.report:
        overrides["report_mode"] = args.report
    if args.instances_file:
        overrides["instances_file"] = args.instances_file

    try:
        base = settings or get_settings()
        effective = base.model_copy(update=overrides) if overrides else base
        batch = asyncio.run(run_from_settings(effective, instance_names=args.instances, console=console))
    except ConfigurationError as exc:
        console.log(f"[bold red]Configuration error[/] {exc}")
        log.error("Configuration error: {}", exc)
        return 2
    return 0 if batch.ok else 1
