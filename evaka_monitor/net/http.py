"""Shared async HTTP helpers built on top of httpx.

This module centralizes default timeout/redirect behavior and provides a small
async wrapper that maps httpx exceptions into monitor-friendly errors.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, Mapping

import httpx

__all__ = ["HttpClient", "NetworkError", "NotFoundError", "ResponseHook"]

_MIN_TIMEOUT_SECONDS = 0.1
_MAX_ERROR_TEXT_CHARS = 2048

ResponseHook = Callable[[httpx.Response], None]


class NetworkError(RuntimeError):
    """Raised when an HTTP request fails or returns a non-success response."""

    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.message = str(message)
        self.status_code = int(status_code) if status_code is not None else None
        self.url = url

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.status_code is None:
            return self.message
        return f"{self.message} (status={self.status_code})"

    @property
    def is_client_error(self) -> bool:
        """Return True for 4xx responses."""
        return self.status_code is not None and 400 <= self.status_code < 500


class NotFoundError(NetworkError):
    """Raised when the requested resource does not exist (HTTP 404)."""


def _truncate(text: str, *, limit: int) -> str:
    """Return a truncated string with an ellipsis when needed."""
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    head = text[: max(0, limit - 3)].rstrip()
    return f"{head}..."


def _request_url(exc: httpx.RequestError) -> str | None:
    try:
        return str(exc.request.url)
    except RuntimeError:
        return None


def _safe_response_text(response: httpx.Response) -> str:
    """Best-effort extraction of response text for error messages."""
    try:
        text = (response.text or "").strip()
    except Exception:
        try:
            text = response.content.decode("utf-8", errors="replace").strip()
        except Exception:
            text = ""
    return _truncate(text, limit=_MAX_ERROR_TEXT_CHARS)


class HttpClient:
    """Small async HTTP client with consistent defaults and error mapping.

    Notes:
        - By default, a short-lived `httpx.AsyncClient` is created per request.
        - Inside `async with HttpClient(...)` a single persistent client is used
          so concurrent tasks share one connection pool.
        - Timeouts are clamped to at least `_MIN_TIMEOUT_SECONDS`.
        - `response_hook` sees every response, including error responses,
          before the status is checked.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout_seconds: float = 10.0,
        follow_redirects: bool = True,
        user_agent: str | None = "evaka-version-monitor",
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        response_hook: ResponseHook | None = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/") + "/" if base_url else None
        self.timeout_seconds = float(max(_MIN_TIMEOUT_SECONDS, timeout_seconds))
        self.follow_redirects = bool(follow_redirects)
        self.transport = transport
        self.response_hook = response_hook

        merged: dict[str, str] = dict(headers or {})
        if user_agent and "User-Agent" not in merged:
            merged["User-Agent"] = user_agent
        self.headers = merged
        self._client: httpx.AsyncClient | None = None

    def _build_client(self) -> httpx.AsyncClient:
        kwargs: dict[str, object] = {
            "timeout": self.timeout_seconds,
            "follow_redirects": self.follow_redirects,
            "headers": self.headers,
        }
        if self.base_url:
            kwargs["base_url"] = self.base_url
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return httpx.AsyncClient(**kwargs)  # type: ignore[arg-type]

    async def open(self) -> None:
        """Open an internal persistent `httpx.AsyncClient`."""
        if self._client is None:
            self._client = self._build_client()

    async def aclose(self) -> None:
        """Close any internal persistent `httpx.AsyncClient`."""
        if self._client is None:
            return
        client, self._client = self._client, None
        await client.aclose()

    async def __aenter__(self) -> "HttpClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.aclose()

    @asynccontextmanager
    async def _client_ctx(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with self._build_client() as client:
            yield client

    async def request(
        self,
        method: str,
        url_or_path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        json_body: Any | None = None,
    ) -> httpx.Response:
        """Send an HTTP request and return the response.

        Raises:
            NotFoundError: When the server answers 404.
            NetworkError: When the request fails or returns another 4xx/5xx response.
        """
        method = (method or "GET").strip().upper()
        target = (url_or_path or "").strip()
        if not target:
            raise ValueError("url_or_path must be non-empty.")

        try:
            async with self._client_ctx() as client:
                response = await client.request(
                    method,
                    target,
                    params=dict(params) if params else None,
                    headers=dict(headers) if headers else None,
                    json=json_body,
                )
                if self.response_hook is not None:
                    self.response_hook(response)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as exc:
            status = int(exc.response.status_code)
            message = _safe_response_text(exc.response) or "HTTP request failed"
            error_cls = NotFoundError if status == 404 else NetworkError
            raise error_cls(message, status_code=status, url=str(exc.request.url)) from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"HTTP request failed: {exc}", url=_request_url(exc)) from exc

    async def get_json(
        self,
        url_or_path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """GET a JSON response, returning parsed payload (or None on empty body)."""
        merged_headers: dict[str, str] = {"Accept": "application/json"}
        if headers:
            merged_headers.update(dict(headers))
        response = await self.request("GET", url_or_path, params=params, headers=merged_headers)
        if not response.content:
            return None
        try:
            text = response.content.decode("utf-8", errors="replace")
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise NetworkError(
                f"Invalid JSON response: {exc}",
                status_code=int(response.status_code),
                url=str(response.request.url),
            ) from exc

    async def post_json(
        self,
        url_or_path: str,
        body: Any,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """POST a JSON body; any 2xx response counts as success."""
        merged_headers: dict[str, str] = {"Content-Type": "application/json"}
        if headers:
            merged_headers.update(dict(headers))
        return await self.request("POST", url_or_path, headers=merged_headers, json_body=body)
