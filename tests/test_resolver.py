from __future__ import annotations

from collections import deque
from typing import Any

import pytest

from evaka_monitor.clients.github import NotASubmodule
from evaka_monitor.models import CommitDetails, InstanceConfig, InstanceKind
from evaka_monitor.net.http import NetworkError, NotFoundError
from evaka_monitor.resolver import VersionResolver


class FakeStatus:
    def __init__(self, *results: Any) -> None:
        self.results = deque(results)
        self.calls: list[str] = []

    async def fetch_deployed_ref(self, domain: str) -> str:
        self.calls.append(domain)
        result = self.results.popleft() if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        return result


class FakeGitHub:
    def __init__(
        self,
        commits: dict[tuple[str, str], CommitDetails | BaseException],
        submodules: dict[tuple[str, str, str], str | BaseException] | None = None,
    ) -> None:
        self.commits = commits
        self.submodules = submodules or {}
        self.commit_calls: list[tuple[str, str]] = []
        self.submodule_calls: list[tuple[str, str, str]] = []

    async def fetch_commit(self, repository: str, ref: str) -> CommitDetails:
        self.commit_calls.append((repository, ref))
        result = self.commits[(repository, ref)]
        if isinstance(result, BaseException):
            raise result
        return result

    async def fetch_submodule_ref(self, repository: str, ref: str, path: str) -> str:
        self.submodule_calls.append((repository, ref, path))
        result = self.submodules[(repository, ref, path)]
        if isinstance(result, BaseException):
            raise result
        return result


def _resolver(status: FakeStatus, github: FakeGitHub, sleep=None) -> VersionResolver:
    return VersionResolver(status=status, github=github, base_delay=0.0, sleep=sleep)


@pytest.mark.asyncio
async def test_core_instance_uses_two_calls_and_same_commit(espoo: InstanceConfig, core_commit: CommitDetails) -> None:
    status = FakeStatus(core_commit.sha)
    github = FakeGitHub({("espoon-voltti/evaka", core_commit.sha): core_commit})

    info = await _resolver(status, github).resolve(espoo)

    assert status.calls == ["espoonvarhaiskasvatus.fi"]
    assert github.commit_calls == [("espoon-voltti/evaka", core_commit.sha)]
    assert github.submodule_calls == []
    assert info.instance == espoo
    assert info.customization == core_commit
    assert info.core == info.customization


@pytest.mark.asyncio
async def test_wrapper_instance_resolves_core_through_submodule(
    tampere: InstanceConfig,
    wrapper_commit: CommitDetails,
    core_commit: CommitDetails,
) -> None:
    status = FakeStatus(wrapper_commit.sha)
    github = FakeGitHub(
        {
            ("Tampere/trevaka", wrapper_commit.sha): wrapper_commit,
            ("espoon-voltti/evaka", core_commit.sha): core_commit,
        },
        {("Tampere/trevaka", wrapper_commit.sha, "evaka"): core_commit.sha},
    )

    info = await _resolver(status, github).resolve(tampere)

    assert status.calls == ["varhaiskasvatus.tampere.fi"]
    assert github.commit_calls == [
        ("Tampere/trevaka", wrapper_commit.sha),
        ("espoon-voltti/evaka", core_commit.sha),
    ]
    assert github.submodule_calls == [("Tampere/trevaka", wrapper_commit.sha, "evaka")]
    assert info.customization == wrapper_commit
    assert info.core == core_commit
    assert info.customization.sha != info.core.sha


@pytest.mark.asyncio
async def test_custom_core_repository_and_submodule_path(tampere: InstanceConfig, wrapper_commit, core_commit) -> None:
    status = FakeStatus(wrapper_commit.sha)
    github = FakeGitHub(
        {
            ("Tampere/trevaka", wrapper_commit.sha): wrapper_commit,
            ("fork/evaka", core_commit.sha): core_commit,
        },
        {("Tampere/trevaka", wrapper_commit.sha, "vendor/evaka"): core_commit.sha},
    )
    resolver = VersionResolver(
        status=status,
        github=github,
        core_repository="fork/evaka",
        core_submodule_path="vendor/evaka",
        base_delay=0.0,
    )
    info = await resolver.resolve(tampere)
    assert info.core == core_commit


@pytest.mark.asyncio
async def test_status_failure_is_retried_then_propagated(tampere: InstanceConfig, recording_sleep) -> None:
    sleep, delays = recording_sleep
    error = NetworkError("Network error")
    status = FakeStatus(error)
    github = FakeGitHub({})

    with pytest.raises(NetworkError) as excinfo:
        await _resolver(status, github, sleep=sleep).resolve(tampere)

    assert excinfo.value is error
    assert len(status.calls) == 3
    assert len(delays) == 2
    assert github.commit_calls == []


@pytest.mark.asyncio
async def test_transient_status_failure_recovers(espoo: InstanceConfig, core_commit, recording_sleep) -> None:
    sleep, _ = recording_sleep
    status = FakeStatus(NetworkError("reset"), core_commit.sha)
    github = FakeGitHub({("espoon-voltti/evaka", core_commit.sha): core_commit})

    info = await _resolver(status, github, sleep=sleep).resolve(espoo)

    assert len(status.calls) == 2
    assert info.core == core_commit


@pytest.mark.asyncio
async def test_missing_commit_is_not_retried(tampere: InstanceConfig) -> None:
    status = FakeStatus("test-sha")
    github = FakeGitHub({("Tampere/trevaka", "test-sha"): NotFoundError("Commit not found", status_code=404)})

    with pytest.raises(NotFoundError, match="Commit not found"):
        await _resolver(status, github).resolve(tampere)
    assert github.commit_calls == [("Tampere/trevaka", "test-sha")]


@pytest.mark.asyncio
async def test_submodule_failure_aborts_resolution(tampere: InstanceConfig, wrapper_commit: CommitDetails) -> None:
    status = FakeStatus("test-sha")
    github = FakeGitHub(
        {("Tampere/trevaka", "test-sha"): wrapper_commit},
        {("Tampere/trevaka", "test-sha", "evaka"): NotASubmodule("evaka", "dir")},
    )

    with pytest.raises(NotASubmodule) as excinfo:
        await _resolver(status, github).resolve(tampere)
    assert excinfo.value.actual_type == "dir"
    assert len(github.submodule_calls) == 1
    assert github.commit_calls == [("Tampere/trevaka", "test-sha")]


def test_from_settings_reads_core_repository(settings) -> None:
    custom = settings.model_copy(update={"core_repository": "fork/evaka", "retry_max_attempts": 5})
    resolver = VersionResolver.from_settings(custom, status=FakeStatus("x"), github=FakeGitHub({}))
    assert resolver.core_repository == "fork/evaka"
    assert resolver.core_submodule_path == "evaka"
    assert resolver.max_attempts == 5


def test_instance_kind_is_closed_enum() -> None:
    assert {kind.value for kind in InstanceKind} == {"Core", "Wrapper"}
