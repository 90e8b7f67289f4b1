from __future__ import annotations

from typing import Any, AsyncIterator, Optional, Sequence, Tuple

import httpx

from ..config import get_proxy_timeout_secs


def build_upstream_request(
    method: str,
    url: str,
    headers: Sequence[Tuple[bytes, bytes]],
    *,
    content: Optional[bytes] = None,
) -> httpx.Request:
    # Built outside the client so its default headers are never merged in.
    return httpx.Request(
        method=method.upper(),
        url=url,
        headers=list(headers),
        content=content,
    )


class ProxyTransport:
    def __init__(self, timeout_secs: Optional[float] = None):
        self._timeout_secs = (
            timeout_secs if timeout_secs is not None else get_proxy_timeout_secs()
        )
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ProxyTransport":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout_secs,
                follow_redirects=False,
            )
        return self._client

    async def send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response:
        client = await self._get_client()
        return await client.send(request, stream=stream)

    async def aclose(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None


async def iter_response_bytes(
    response: httpx.Response,
    chunk_size: Optional[int] = None,
) -> AsyncIterator[bytes]:
    async for chunk in response.aiter_raw(chunk_size):
        if chunk:
            yield chunk
