"""Datadog payloads and delivery for resolved version information.

Two shapes are produced from the same `VersionInfo`:

- a log record for the logs intake API (one record per instance), and
- a deployment event for the events API.

Outward-facing commit identifiers are always the seven-character short form.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from loguru import logger
from pydantic import BaseModel

from evaka_monitor.config import ConfigurationError
from evaka_monitor.formatting import age_in_days, format_age
from evaka_monitor.models import VersionInfo
from evaka_monitor.net.http import HttpClient
from evaka_monitor.net.retry import DEFAULT_BASE_DELAY_SECONDS, DEFAULT_MAX_ATTEMPTS, with_retry
from evaka_monitor.resolver import DEFAULT_CORE_REPOSITORY

if TYPE_CHECKING:
    import httpx

    from evaka_monitor.config import ReportMode, Settings

log = logger.bind(module="reporting.datadog")

__all__ = [
    "DEFAULT_DATADOG_SITE",
    "DatadogEvent",
    "DatadogLogEntry",
    "DatadogReporter",
    "build_deployment_event",
    "build_log_entry",
]

DEFAULT_DATADOG_SITE = "datadoghq.com"
SOURCE_TAG = "evaka-monitor"
SERVICE_NAME = "evaka-version-monitor"


class DatadogLogEntry(BaseModel):
    ddsource: str
    ddtags: str
    hostname: str
    service: str
    message: str
    instance_name: str
    instance_domain: str
    custom_repo: str
    custom_commit: str
    custom_date: str
    custom_age: str
    custom_age_days: int
    custom_message: str
    custom_author: str
    core_repo: str
    core_commit: str
    core_date: str
    core_age: str
    core_age_days: int
    core_message: str
    core_author: str


class DatadogEvent(BaseModel):
    title: str
    text: str
    tags: list[str]
    alert_type: Literal["info", "warning", "error", "success"] = "info"
    source_type_name: str = SOURCE_TAG


def _age(date: str, now: datetime | None) -> tuple[str, int]:
    # Unparseable dates still produce a record; the raw date is kept alongside.
    try:
        return format_age(date, now), age_in_days(date, now)
    except ValueError:
        return "unknown", -1


def build_log_entry(
    info: VersionInfo,
    *,
    now: datetime | None = None,
    environment: str = "production",
    hostname: str = "github-actions",
    core_repository: str = DEFAULT_CORE_REPOSITORY,
) -> DatadogLogEntry:
    """Build the logs-intake record for one instance."""

    instance, custom, core = info.instance, info.customization, info.core
    custom_age, custom_days = _age(custom.date, now)
    core_age, core_days = _age(core.date, now)
    summary = (
        f"{instance.name}: {custom.short_sha} ({custom_age}), "
        f"core {core.short_sha} ({core_age})"
    )
    return DatadogLogEntry(
        ddsource=SOURCE_TAG,
        ddtags=f"env:{environment}",
        hostname=hostname,
        service=SERVICE_NAME,
        message=summary,
        instance_name=instance.name,
        instance_domain=instance.domain,
        custom_repo=instance.repository,
        custom_commit=custom.short_sha,
        custom_date=custom.date,
        custom_age=custom_age,
        custom_age_days=custom_days,
        custom_message=custom.message,
        custom_author=custom.author,
        core_repo=core_repository,
        core_commit=core.short_sha,
        core_date=core.date,
        core_age=core_age,
        core_age_days=core_days,
        core_message=core.message,
        core_author=core.author,
    )


def build_deployment_event(
    info: VersionInfo,
    *,
    core_repository: str = DEFAULT_CORE_REPOSITORY,
) -> DatadogEvent:
    """Build the events-API payload for one instance."""

    instance, custom, core = info.instance, info.customization, info.core
    text = (
        f"Customization: {custom.message} ({custom.short_sha})\n"
        f"Core: {core.message} ({core.short_sha})"
    )
    tags = [
        f"instance:{instance.domain}",
        f"source:{SOURCE_TAG}",
        f"repo_custom:{instance.repository}",
        f"commit_custom:{custom.short_sha}",
        f"date_custom:{custom.date}",
        f"repo_core:{core_repository}",
        f"commit_core:{core.short_sha}",
        f"date_core:{core.date}",
    ]
    return DatadogEvent(
        title=f"Deployment detected for {instance.name}",
        text=text,
        tags=tags,
    )


class DatadogReporter:
    """Deliver log records and deployment events to Datadog.

    The API key is validated at construction so a missing credential fails
    before any request is attempted.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        site: str = DEFAULT_DATADOG_SITE,
        environment: str = "production",
        hostname: str = "github-actions",
        core_repository: str = DEFAULT_CORE_REPOSITORY,
        timeout_seconds: float = 10.0,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        transport: "httpx.AsyncBaseTransport | None" = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        key = (api_key or "").strip()
        if not key:
            raise ConfigurationError("DATADOG_API_KEY environment variable is not set")
        site = (site or "").strip() or DEFAULT_DATADOG_SITE
        self.logs_url = f"https://http-intake.logs.{site}/api/v2/logs"
        self.events_url = f"https://api.{site}/api/v1/events"
        self.environment = environment
        self.hostname = hostname
        self.core_repository = core_repository
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self._http = HttpClient(
            timeout_seconds=timeout_seconds,
            headers={"DD-API-KEY": key},
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        *,
        transport: "httpx.AsyncBaseTransport | None" = None,
    ) -> "DatadogReporter":
        return cls(
            settings.require_datadog_api_key(),
            site=settings.datadog_site,
            environment=settings.environment,
            hostname=settings.hostname,
            core_repository=settings.core_repository,
            timeout_seconds=settings.http_timeout_seconds,
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_seconds,
            transport=transport,
        )

    @property
    def http(self) -> HttpClient:
        return self._http

    async def _post(self, description: str, url: str, body: object) -> None:
        kwargs = {} if self._sleep is None else {"sleep": self._sleep}
        await with_retry(
            lambda: self._http.post_json(url, body),
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            description=description,
            **kwargs,
        )

    async def send_version_log(self, info: VersionInfo, *, now: datetime | None = None) -> None:
        entry = build_log_entry(
            info,
            now=now,
            environment=self.environment,
            hostname=self.hostname,
            core_repository=self.core_repository,
        )
        await self._post(
            f"Datadog log for {info.instance.name}",
            self.logs_url,
            [entry.model_dump()],
        )
        log.info("Sent version log for {}", info.instance.name)

    async def send_deployment_event(self, info: VersionInfo) -> None:
        event = build_deployment_event(info, core_repository=self.core_repository)
        await self._post(
            f"Datadog event for {info.instance.name}",
            self.events_url,
            event.model_dump(),
        )
        log.info("Sent deployment event for {}", info.instance.name)

    async def report(self, info: VersionInfo, mode: "ReportMode" = "event") -> None:
        """Send the payload(s) selected by `mode` (``event``, ``log`` or ``both``)."""
        if mode in ("event", "both"):
            await self.send_deployment_event(info)
        if mode in ("log", "both"):
            await self.send_version_log(info)
