"""Configuration checks that can run without touching the network."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from evaka_monitor.config import ConfigurationError, Settings
from evaka_monitor.instances import load_instances
from evaka_monitor.models import InstanceKind

__all__ = [
    "CheckResult",
    "Status",
    "check_datadog_api_key",
    "check_github_token",
    "check_instances",
    "check_retry_policy",
    "run_checks",
]

Status = Literal["ok", "warn", "fail"]


@dataclass(slots=True)
class CheckResult:
    name: str
    status: Status
    details: str


def check_datadog_api_key(settings: Settings) -> CheckResult:
    if (settings.datadog_api_key or "").strip():
        return CheckResult("datadog_api_key", "ok", f"set (site={settings.datadog_site})")
    if settings.dry_run:
        return CheckResult("datadog_api_key", "warn", "DATADOG_API_KEY is not set (dry run only).")
    return CheckResult("datadog_api_key", "fail", "DATADOG_API_KEY is not set (required to report).")


def check_github_token(settings: Settings) -> CheckResult:
    if (settings.github_token or "").strip():
        return CheckResult("github_token", "ok", "set (authenticated GitHub requests)")
    return CheckResult(
        "github_token",
        "warn",
        "GH_TOKEN is not set; GitHub requests are unauthenticated and have a low rate limit.",
    )


def check_instances(settings: Settings) -> CheckResult:
    try:
        instances = load_instances(settings.instances_file)
    except ConfigurationError as exc:
        return CheckResult("instances", "fail", str(exc))
    core = sum(1 for i in instances if i.kind is InstanceKind.CORE)
    source = settings.instances_file or "built-in"
    return CheckResult(
        "instances",
        "ok",
        f"{len(instances)} instances loaded from {source} ({core} core, {len(instances) - core} wrapper)",
    )


def check_retry_policy(settings: Settings) -> CheckResult:
    if settings.retry_max_attempts < 1:
        return CheckResult("retry_policy", "fail", "RETRY_MAX_ATTEMPTS must be at least 1.")
    if settings.retry_base_delay_seconds < 0:
        return CheckResult("retry_policy", "fail", "RETRY_BASE_DELAY_SECONDS must not be negative.")
    return CheckResult(
        "retry_policy",
        "ok",
        f"{settings.retry_max_attempts} attempts, base delay {settings.retry_base_delay_seconds}s",
    )


def run_checks(settings: Settings) -> list[CheckResult]:
    return [
        check_datadog_api_key(settings),
        check_github_token(settings),
        check_instances(settings),
        check_retry_policy(settings),
    ]
