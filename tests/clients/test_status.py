from __future__ import annotations

import httpx
import pytest

from evaka_monitor.clients.status import StatusClient
from evaka_monitor.net.http import NetworkError


@pytest.mark.asyncio
async def test_fetch_deployed_ref_reads_api_version() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.scheme == "https"
        assert request.url.host == "espoonvarhaiskasvatus.fi"
        assert request.url.path == "/api/citizen/auth/status"
        assert "authorization" not in request.headers
        return httpx.Response(200, json={"apiVersion": "abc123def456", "loggedIn": False}, request=request)

    client = StatusClient(transport=httpx.MockTransport(handler))
    assert await client.fetch_deployed_ref("espoonvarhaiskasvatus.fi") == "abc123def456"


@pytest.mark.asyncio
async def test_fetch_deployed_ref_raises_without_api_version() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"loggedIn": False}, request=request)

    client = StatusClient(transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkError, match="did not report an apiVersion"):
        await client.fetch_deployed_ref("evaka.example.fi")


@pytest.mark.asyncio
async def test_fetch_deployed_ref_raises_on_server_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, content=b"bad gateway", request=request)

    client = StatusClient(transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkError) as excinfo:
        await client.fetch_deployed_ref("evaka.example.fi")
    assert excinfo.value.status_code == 502


def test_status_url_rejects_empty_domain() -> None:
    with pytest.raises(ValueError):
        StatusClient.status_url(" ")
