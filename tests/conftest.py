from __future__ import annotations

import sys
from pathlib import Path
from typing import Awaitable, Callable, Generator

import pytest
from loguru import logger

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from evaka_monitor.config import Settings
from evaka_monitor.models import CommitDetails, InstanceConfig, InstanceKind

_MONITOR_ENV_VARS = (
    "DATADOG_API_KEY",
    "DD_SITE",
    "GH_TOKEN",
    "DRY_RUN",
    "REPORT_MODE",
    "INSTANCES_FILE",
    "GITHUB_RESOLVE_PR_TITLES",
    "RETRY_MAX_ATTEMPTS",
    "RETRY_BASE_DELAY_SECONDS",
    "CORE_REPOSITORY",
    "CORE_SUBMODULE_PATH",
    "MONITOR_ENVIRONMENT",
    "MONITOR_HOSTNAME",
    "LOG_LEVEL",
    "LOGS_DIR",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer credentials from leaking into tests."""
    for name in _MONITOR_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> Generator[Settings, None, None]:
    """Return a fresh Settings instance that ignores any local .env file."""

    yield Settings(_env_file=None, retry_base_delay_seconds=0.0)


@pytest.fixture
def log_messages() -> Generator[list[str], None, None]:
    """Collect messages logged through loguru at WARNING and above."""

    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="WARNING")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def recording_sleep() -> tuple[Callable[[float], Awaitable[None]], list[float]]:
    """Return an async sleep replacement and the list of delays it was asked for."""

    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(float(delay))

    return _sleep, delays


@pytest.fixture
def espoo() -> InstanceConfig:
    return InstanceConfig(
        name="Espoo",
        domain="espoonvarhaiskasvatus.fi",
        repository="espoon-voltti/evaka",
        kind=InstanceKind.CORE,
    )


@pytest.fixture
def tampere() -> InstanceConfig:
    return InstanceConfig(
        name="Tampere",
        domain="varhaiskasvatus.tampere.fi",
        repository="Tampere/trevaka",
        kind=InstanceKind.WRAPPER,
    )


@pytest.fixture
def wrapper_commit() -> CommitDetails:
    return CommitDetails(
        sha="f1e2d3c4b5a69788796a5b4c3d2e1f0a9b8c7d6e",
        message="chore: Update Tampere customizations",
        date="2024-01-20T14:00:00Z",
        author="tampere-dev",
    )


@pytest.fixture
def core_commit() -> CommitDetails:
    return CommitDetails(
        sha="0a1b2c3d4e5f60718293a4b5c6d7e8f901234567",
        message="fix: Important bugfix",
        date="2024-01-18T09:00:00Z",
        author="espoo-dev",
    )
