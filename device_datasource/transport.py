"""
Transport used to reach the host's query endpoint.

The core only depends on ``Transport.execute``: POST an envelope, get the
host's JSON response back. ``HttpTransport`` implements it with httpx.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from device_datasource.config import HostConfig
from device_datasource.utils.exceptions import TransportError

logger = logging.getLogger(__name__)

QUERY_PATH = "api/ds/query"
OK_STATUSES = (200, 207)


class Transport(Protocol):
    async def execute(self, envelope: Dict[str, Any]) -> Dict[str, Any]:
        ...


class HttpTransport:
    """
    POST query envelopes to ``<base_url>/api/ds/query``.

    Args:
        base_url (str): base URL of the host, e.g. "http://grafana:3000".
        api_key (str): (optional) bearer token sent with every request.
        timeout (float): (optional) request timeout in seconds (default: 10).
        client (httpx.AsyncClient): (optional) preconfigured client. Its base URL is used as is.
    """

    def __init__(self, base_url: str = "", api_key: Optional[str] = None, timeout: float = 10.0,
                 client: Optional[httpx.AsyncClient] = None) -> None:
        if client is None:
            if not base_url:
                raise ValueError("base_url is required when no client is given")
            headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
            client = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)
        self._client = client

    @classmethod
    def from_config(cls, cfg: HostConfig) -> "HttpTransport":
        api_key = cfg.api_key.get_secret_value() if cfg.api_key else None
        return cls(base_url=cfg.base_url, api_key=api_key, timeout=cfg.timeout)

    async def execute(self, envelope: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("POST %s (%d queries)", QUERY_PATH, len(envelope.get("queries", [])))
        try:
            resp = await self._client.post(QUERY_PATH, json=envelope)
        except httpx.RequestError as exc:
            raise TransportError(f"Failed to reach query endpoint: {exc}") from exc

        if resp.status_code not in OK_STATUSES:
            raise TransportError(f"Query endpoint error {resp.status_code}: {resp.text}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise TransportError("Query endpoint returned a non JSON payload") from exc
        if not isinstance(data, dict):
            raise TransportError("Query endpoint returned unexpected payload")
        return data

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
