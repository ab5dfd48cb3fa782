"""
REST HTTP client for the chat backend proxy.
"""

from typing import Any, Optional

import httpx

from swarm_chat.errors import SwarmChatError

DEFAULT_BASE_URL = "http://localhost:5000"
USER_AGENT = "swarm-chat/0.1.0"


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_api_key(self, api_key: Optional[str]) -> None:
        self._api_key = api_key

    def _auth_headers(self, authenticated: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if authenticated and self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    @staticmethod
    def _check(resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            raise SwarmChatError(
                "http_error",
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                {"status_code": resp.status_code},
            )
        if not resp.content:
            return None
        return resp.json()

    async def get(self, path: str, params: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        resp = await self._client.get(path, params=params, headers=self._auth_headers(authenticated))
        return self._check(resp)

    async def post(self, path: str, body: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        resp = await self._client.post(path, json=body, headers=self._auth_headers(authenticated))
        return self._check(resp)

    async def close(self) -> None:
        await self._client.aclose()
