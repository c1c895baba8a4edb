"""
Service HTTP Client
===================
JSON GET/POST against one service's base URL.

Error contract:
    - 2xx           → decoded JSON body is returned.
    - 4xx           → RequestError carrying the status code and decoded body
                      (the service's structured rejection).
    - anything else → the httpx / decoding exception propagates unchanged;
                      callers treat it as a transport failure.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from harness.core.config import HTTP_CONNECT_TIMEOUT, HTTP_TIMEOUT
from harness.core.errors import RequestError

logger = logging.getLogger(__name__)


class ServiceClient:
    """Async JSON client bound to a single service."""

    def __init__(
        self,
        base_url: str,
        timeout: float = HTTP_TIMEOUT,
        connect_timeout: float = HTTP_CONNECT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "ServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    async def get(self, path: str) -> Dict[str, Any]:
        response = await self.client.get(path)
        return self._decode(response)

    async def post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self.client.post(path, json=payload)
        return self._decode(response)

    @staticmethod
    def _decode(response: httpx.Response) -> Dict[str, Any]:
        if 400 <= response.status_code < 500:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise RequestError(body.get("error"), response.status_code, body)

        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f"Expected a JSON object, got {type(body).__name__}")
        return body
