"""Async client for the playground execution relay."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class PlaygroundClient:
    """Talks to a running relay over HTTP.

    Usage:
        async with PlaygroundClient("http://localhost:3001") as client:
            result = await client.execute('print("hi")')
    """

    def __init__(self, base_url: str = "http://localhost:3001", timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create a shared httpx client for connection reuse."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
            )
        return self._http_client

    async def health(self) -> dict:
        client = await self._get_http_client()
        response = await client.get("/health")
        response.raise_for_status()
        return response.json()

    async def execute(self, code: str) -> dict:
        """Submit code and return the relay's JSON body.

        Execution failures (HTTP 500) are returned as their structured body;
        rejected submissions (HTTP 4xx) raise httpx.HTTPStatusError.
        """
        client = await self._get_http_client()
        response = await client.post("/execute", json={"code": code})
        if response.status_code == httpx.codes.INTERNAL_SERVER_ERROR:
            data = response.json()
            logger.warning(f"Execution failed: {data.get('message')}")
            return data
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "PlaygroundClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
