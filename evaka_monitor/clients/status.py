"""Client for the public auth-status endpoint of an eVaka instance."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from evaka_monitor.net.http import HttpClient, NetworkError

if TYPE_CHECKING:
    import httpx

log = logger.bind(module="clients.status")

__all__ = ["STATUS_PATH", "StatusClient"]

STATUS_PATH = "/api/citizen/auth/status"


class StatusClient:
    """Reads the deployed build identifier (`apiVersion`) of an instance."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        transport: "httpx.AsyncBaseTransport | None" = None,
        http: HttpClient | None = None,
    ) -> None:
        self._http = http or HttpClient(timeout_seconds=timeout_seconds, transport=transport)

    @property
    def http(self) -> HttpClient:
        return self._http

    @staticmethod
    def status_url(domain: str) -> str:
        host = (domain or "").strip().rstrip("/")
        if not host:
            raise ValueError("Instance domain must be non-empty.")
        return f"https://{host}{STATUS_PATH}"

    async def fetch_deployed_ref(self, domain: str) -> str:
        """Return the commit-ish the instance reports as currently running.

        Raises:
            NetworkError: On transport failure, non-2xx status, or a payload
                without a usable `apiVersion`.
        """
        url = self.status_url(domain)
        payload: Any = await self._http.get_json(url)
        version = payload.get("apiVersion") if isinstance(payload, dict) else None
        if not isinstance(version, str) or not version.strip():
            raise NetworkError(f"Status endpoint of {domain} did not report an apiVersion", url=url)
        log.debug("Instance {} reports apiVersion {}", domain, version)
        return version.strip()
