# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Quota snapshot sources.

A source performs the two logical reads of a refresh: the health-style
summary and the limits-style matrix. The HTTP implementation talks to a
running proxy; tests and embedders can supply their own source.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from ..core.constants import (
    ACCOUNT_LIMITS_ENDPOINT,
    DEFAULT_PROXY_URL,
    DEFAULT_REQUEST_TIMEOUT,
    HEALTH_ENDPOINT,
)
from ..core.errors import MalformedSnapshotError, SnapshotFetchError
from ..core.types import LimitsSnapshot, SummarySnapshot
from .payloads import parse_limits_snapshot, parse_summary_snapshot

lib_logger = logging.getLogger("quota_engine")


class QuotaSnapshotSource(ABC):
    """Supplies the two snapshot reads of a refresh."""

    @abstractmethod
    async def fetch_summary(self) -> SummarySnapshot:
        """Health-style read. Raises a QuotaMonitorError on failure."""

    @abstractmethod
    async def fetch_limits(self) -> LimitsSnapshot:
        """Limits-style read. Raises a QuotaMonitorError on failure."""

    async def aclose(self) -> None:
        """Release any held resources."""


class HttpSnapshotSource(QuotaSnapshotSource):
    """
    Reads snapshots from a proxy over HTTP.

    Endpoints:
    - GET /health                      -> summary snapshot
    - GET /account-limits?format=json  -> limits snapshot
    """

    def __init__(
        self,
        base_url: str = DEFAULT_PROXY_URL,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            base_url: Proxy base URL (e.g., "http://localhost:8085")
            api_key: Optional bearer token
            timeout: Per-request timeout in seconds
            client: Optional HTTP client for connection reuse (not closed here)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers including auth if configured."""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _get_json(
        self, endpoint: str, label: str, params: Optional[Dict[str, str]] = None
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            response = await self._get_client().get(
                url, headers=self._get_headers(), params=params
            )
        except httpx.ConnectError:
            raise SnapshotFetchError(
                endpoint, "Connection failed. Is the proxy running?"
            )
        except httpx.TimeoutException:
            raise SnapshotFetchError(endpoint, "Request timed out.")
        except httpx.HTTPError as e:
            raise SnapshotFetchError(endpoint, f"{type(e).__name__}: {e}")

        lib_logger.debug(f"GET {endpoint} -> {response.status_code}")
        if response.status_code != 200:
            raise SnapshotFetchError(
                endpoint,
                f"{label} failed: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            raise MalformedSnapshotError(f"{label} returned invalid JSON")

    async def fetch_summary(self) -> SummarySnapshot:
        payload = await self._get_json(HEALTH_ENDPOINT, "Health check")
        return parse_summary_snapshot(payload)

    async def fetch_limits(self) -> LimitsSnapshot:
        payload = await self._get_json(
            ACCOUNT_LIMITS_ENDPOINT, "Account limits", params={"format": "json"}
        )
        return parse_limits_snapshot(payload)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
