"""Resolve the version lineage (customization commit -> core commit) of an instance."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, TypeVar

from loguru import logger

from evaka_monitor.models import CommitDetails, InstanceConfig, InstanceKind, VersionInfo
from evaka_monitor.net.retry import DEFAULT_BASE_DELAY_SECONDS, DEFAULT_MAX_ATTEMPTS, with_retry

if TYPE_CHECKING:
    from evaka_monitor.config import Settings

log = logger.bind(module="resolver")

__all__ = [
    "CommitSource",
    "DEFAULT_CORE_REPOSITORY",
    "DEFAULT_CORE_SUBMODULE_PATH",
    "DeployedRefSource",
    "VersionResolver",
]

T = TypeVar("T")

DEFAULT_CORE_REPOSITORY = "espoon-voltti/evaka"
DEFAULT_CORE_SUBMODULE_PATH = "evaka"


class DeployedRefSource(Protocol):
    async def fetch_deployed_ref(self, domain: str) -> str: ...


class CommitSource(Protocol):
    async def fetch_commit(self, repository: str, ref: str) -> CommitDetails: ...

    async def fetch_submodule_ref(self, repository: str, ref: str, path: str) -> str: ...


class VersionResolver:
    """Turn an `InstanceConfig` into a `VersionInfo` with the fewest remote calls.

    Core instances need two calls (status + commit). Wrapper instances need
    four: status, wrapper commit, submodule pointer and core commit. Each call
    is retried on transient failures; anything else propagates unchanged.
    """

    def __init__(
        self,
        *,
        status: DeployedRefSource,
        github: CommitSource,
        core_repository: str = DEFAULT_CORE_REPOSITORY,
        core_submodule_path: str = DEFAULT_CORE_SUBMODULE_PATH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.status = status
        self.github = github
        self.core_repository = core_repository
        self.core_submodule_path = core_submodule_path
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        *,
        status: DeployedRefSource,
        github: CommitSource,
    ) -> "VersionResolver":
        return cls(
            status=status,
            github=github,
            core_repository=settings.core_repository,
            core_submodule_path=settings.core_submodule_path,
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_seconds,
        )

    async def _call(self, description: str, operation: Callable[[], Awaitable[T]]) -> T:
        kwargs = {} if self._sleep is None else {"sleep": self._sleep}
        return await with_retry(
            operation,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            description=description,
            **kwargs,
        )

    async def resolve(self, instance: InstanceConfig) -> VersionInfo:
        deployed_ref = await self._call(
            f"status of {instance.domain}",
            lambda: self.status.fetch_deployed_ref(instance.domain),
        )
        customization = await self._call(
            f"commit {deployed_ref} in {instance.repository}",
            lambda: self.github.fetch_commit(instance.repository, deployed_ref),
        )

        if instance.kind is InstanceKind.CORE:
            core = customization
        else:
            core_ref = await self._call(
                f"submodule {self.core_submodule_path} of {instance.repository}@{deployed_ref}",
                lambda: self.github.fetch_submodule_ref(
                    instance.repository, deployed_ref, self.core_submodule_path
                ),
            )
            core = await self._call(
                f"commit {core_ref} in {self.core_repository}",
                lambda: self.github.fetch_commit(self.core_repository, core_ref),
            )

        log.info(
            "Resolved {}: custom={} core={}",
            instance.name,
            customization.short_sha,
            core.short_sha,
        )
        return VersionInfo(instance=instance, customization=customization, core=core)
