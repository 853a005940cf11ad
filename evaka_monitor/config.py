from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from loguru import logger
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console

console = Console()
log = logger.bind(module="config")

__all__ = ["ConfigurationError", "ReportMode", "Settings", "get_settings"]

ReportMode = Literal["event", "log", "both"]


class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing or invalid."""


class Settings(BaseSettings):
    """Centralised monitor configuration read from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field(default="production", alias="MONITOR_ENVIRONMENT")
    hostname: str = Field(default="github-actions", alias="MONITOR_HOSTNAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    logs_base_dir: str | None = Field(default=None, alias="LOGS_DIR")

    dry_run: bool = Field(default=False, alias="DRY_RUN")
    report_mode: ReportMode = Field(default="event", alias="REPORT_MODE")
    instances_file: str | None = Field(default=None, alias="INSTANCES_FILE")

    datadog_api_key: str | None = Field(default=None, alias="DATADOG_API_KEY")
    datadog_site: str = Field(default="datadoghq.com", alias="DD_SITE")

    github_token: str | None = Field(default=None, alias="GH_TOKEN")
    github_api_base_url: str = Field(default="https://api.github.com", alias="GITHUB_API_BASE_URL")
    github_resolve_pr_titles: bool = Field(default=False, alias="GITHUB_RESOLVE_PR_TITLES")

    core_repository: str = Field(default="espoon-voltti/evaka", alias="CORE_REPOSITORY")
    core_submodule_path: str = Field(default="evaka", alias="CORE_SUBMODULE_PATH")

    http_timeout_seconds: float = Field(default=10.0, alias="HTTP_TIMEOUT_SECONDS")
    retry_max_attempts: int = Field(default=3, alias="RETRY_MAX_ATTEMPTS")
    retry_base_delay_seconds: float = Field(default=1.0, alias="RETRY_BASE_DELAY_SECONDS")

    def require_datadog_api_key(self) -> str:
        key = (self.datadog_api_key or "").strip()
        if not key:
            raise ConfigurationError("DATADOG_API_KEY environment variable is not set")
        return key

    def export_safe(self) -> dict[str, Any]:
        """Return non-sensitive settings for debugging/logging."""
        return {
            "environment": self.environment,
            "hostname": self.hostname,
            "dry_run": self.dry_run,
            "report_mode": self.report_mode,
            "instances_file": self.instances_file,
            "datadog_site": self.datadog_site,
            "datadog_api_key_set": bool(self.datadog_api_key),
            "github_api_base_url": self.github_api_base_url,
            "github_token_set": bool(self.github_token),
            "github_resolve_pr_titles": self.github_resolve_pr_titles,
            "core_repository": self.core_repository,
            "core_submodule_path": self.core_submodule_path,
            "http_timeout_seconds": self.http_timeout_seconds,
            "retry_max_attempts": self.retry_max_attempts,
            "retry_base_delay_seconds": self.retry_base_delay_seconds,
        }


@lru_cache
def get_settings() -> Settings:
    """Load and cache monitor settings.

    Raises:
        ConfigurationError: When an environment value fails validation.
    """
    try:
        settings = Settings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid monitor settings: {exc}") from exc
    console.log(
        f"[bold green]Loaded settings[/] env={settings.environment!r} "
        f"site={settings.datadog_site!r} dry_run={settings.dry_run}",
    )
    log.info("Settings initialised: {}", settings.export_safe())
    return settings
