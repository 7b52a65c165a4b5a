"""
HTTP client for a running nickchat server's admin endpoints.
"""

from typing import Any

import httpx

from nickchat.errors import ChatError

DEFAULT_BASE_URL = "http://localhost:3001"


class AdminClient:
    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0):
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": "nickchat-cli/0.1.0", "Accept": "application/json"},
            timeout=timeout,
        )

    async def get(self, path: str) -> Any:
        resp = await self._client.get(path)
        if resp.status_code >= 400:
            raise ChatError("http_error", f"HTTP {resp.status_code}: {resp.text[:200]}")
        return resp.json()

    async def health(self) -> dict[str, Any]:
        return await self.get("/health")

    async def connected_users(self) -> dict[str, Any]:
        """Only served when the server runs with debug enabled."""
        return await self.get("/api/debug/users")

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AdminClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
