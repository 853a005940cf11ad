"""Value objects shared by the resolver, formatter and reporters.

All types are immutable. A `VersionInfo` is built fresh for every resolution
and carries full commit hashes; shortening happens only when rendering.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

__all__ = [
    "SHORT_SHA_LENGTH",
    "CommitDetails",
    "InstanceConfig",
    "InstanceKind",
    "VersionInfo",
    "short_sha",
]

SHORT_SHA_LENGTH: int = 7


def short_sha(sha: str) -> str:
    """Return the display form of a commit hash (its first seven characters)."""
    return (sha or "")[:SHORT_SHA_LENGTH]


class InstanceKind(str, enum.Enum):
    """How an instance relates to the shared eVaka core repository."""

    # The instance deploys the core repository directly.
    CORE = "Core"
    # The instance deploys its own repository which pins core as a submodule.
    WRAPPER = "Wrapper"


@dataclass(frozen=True, slots=True)
class InstanceConfig:
    name: str
    domain: str
    repository: str
    kind: InstanceKind


@dataclass(frozen=True, slots=True)
class CommitDetails:
    """Metadata of a single commit as reported by the hosting platform."""

    sha: str
    message: str
    date: str
    author: str

    @property
    def short_sha(self) -> str:
        return short_sha(self.sha)


@dataclass(frozen=True, slots=True)
class VersionInfo:
    """Resolved version lineage of one instance.

    For core instances `core` and `customization` describe the same commit.
    """

    instance: InstanceConfig
    customization: CommitDetails
    core: CommitDetails
