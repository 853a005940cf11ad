"""GitHub REST client used to describe deployed commits.

This module delegates HTTP calls to `evaka_monitor.net.http` so that timeout,
redirect, and error mapping behavior remains consistent across call sites.
Every GitHub response passes through the rate-limit guard.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Mapping
from urllib.parse import quote

from loguru import logger

from evaka_monitor.formatting import normalize_commit_message
from evaka_monitor.models import CommitDetails
from evaka_monitor.net.http import HttpClient, NetworkError
from evaka_monitor.net.retry import PermanentError, check_rate_limit

if TYPE_CHECKING:
    import httpx

    from evaka_monitor.config import Settings

log = logger.bind(module="clients.github")

__all__ = [
    "GITHUB_API_BASE_URL",
    "GitHubClient",
    "NotASubmodule",
    "extract_pull_request_number",
]

GITHUB_API_BASE_URL = "https://api.github.com"
_SUBMODULE_TYPE = "submodule"
_MERGE_PR_RE = re.compile(r"^Merge pull request #(\d+) from")


class NotASubmodule(PermanentError):
    """Raised when a tree entry exists but is not a submodule reference."""

    def __init__(self, path: str, actual_type: str | None) -> None:
        super().__init__(f"Expected submodule at path {path!r}, got type {actual_type!r}")
        self.path = path
        self.actual_type = actual_type


def extract_pull_request_number(first_line: str) -> int | None:
    """Return the PR number of a ``Merge pull request #N from ...`` line."""
    match = _MERGE_PR_RE.match(first_line or "")
    return int(match.group(1)) if match else None


def _rate_limit_hook(response: "httpx.Response") -> None:
    check_rate_limit(response.headers)


class GitHubClient:
    """Small JSON client for the commits, contents and pulls endpoints."""

    def __init__(
        self,
        *,
        token: str | None = None,
        base_url: str = GITHUB_API_BASE_URL,
        timeout_seconds: float = 10.0,
        resolve_pr_titles: bool = False,
        transport: "httpx.AsyncBaseTransport | None" = None,
    ) -> None:
        headers = {"Accept": "application/vnd.github.v3+json"}
        token = (token or "").strip()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.resolve_pr_titles = bool(resolve_pr_titles)
        self._http = HttpClient(
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            headers=headers,
            transport=transport,
            response_hook=_rate_limit_hook,
        )

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        *,
        transport: "httpx.AsyncBaseTransport | None" = None,
    ) -> "GitHubClient":
        return cls(
            token=settings.github_token,
            base_url=settings.github_api_base_url,
            timeout_seconds=settings.http_timeout_seconds,
            resolve_pr_titles=settings.github_resolve_pr_titles,
            transport=transport,
        )

    @property
    def http(self) -> HttpClient:
        return self._http

    async def _get(self, path: str, *, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        # Override the JSON Accept header set by get_json with the GitHub media type.
        payload = await self._http.get_json(
            path,
            params=params,
            headers={"Accept": "application/vnd.github.v3+json"},
        )
        if not isinstance(payload, dict):
            raise NetworkError(f"Unexpected GitHub response for {path}: expected an object")
        return payload

    async def fetch_commit(self, repository: str, ref: str) -> CommitDetails:
        """Return details of `ref` in `repository` with a normalized message.

        Raises:
            NotFoundError: When the repository or ref does not exist.
            NetworkError: On any other request failure.
        """
        data = await self._get(f"repos/{repository}/commits/{quote(ref, safe='')}")
        commit = data.get("commit") or {}
        raw_message = str(commit.get("message") or "")

        if self.resolve_pr_titles:
            number = extract_pull_request_number(raw_message.split("\n", 1)[0])
            if number is not None:
                title = await self.fetch_pull_request_title(repository, number)
                if title:
                    raw_message = title

        account = data.get("author") or {}
        author = account.get("login") or (commit.get("author") or {}).get("name") or ""
        return CommitDetails(
            sha=str(data.get("sha") or ref),
            message=normalize_commit_message(raw_message),
            date=str((commit.get("committer") or {}).get("date") or ""),
            author=str(author),
        )

    async def fetch_submodule_ref(self, repository: str, ref: str, path: str) -> str:
        """Return the commit pinned by the submodule at `path` in `ref`.

        Raises:
            NotASubmodule: When the entry exists but is a file or directory.
        """
        data = await self._http.get_json(
            f"repos/{repository}/contents/{path}",
            params={"ref": ref},
            headers={"Accept": "application/vnd.github.v3+json"},
        )
        if isinstance(data, list):
            # The contents API lists directories as arrays of entries.
            raise NotASubmodule(path, "dir")
        if not isinstance(data, dict):
            raise NetworkError(f"Unexpected GitHub response for {path}: expected an object")
        entry_type = data.get("type")
        if entry_type != _SUBMODULE_TYPE:
            raise NotASubmodule(path, entry_type)
        sha = data.get("sha")
        if not isinstance(sha, str) or not sha:
            raise NetworkError(f"Submodule entry {path!r} in {repository} has no sha")
        return sha

    async def fetch_pull_request_title(self, repository: str, number: int) -> str | None:
        """Return the title of a pull request, or None when it cannot be read."""
        try:
            data = await self._get(f"repos/{repository}/pulls/{int(number)}")
        except Exception as exc:
            log.debug("PR title lookup failed for {}#{}: {}", repository, number, exc)
            return None
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            return None
        return title.strip()
