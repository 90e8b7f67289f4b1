from __future__ import annotations

import logging
from urllib.parse import quote
from typing import AsyncIterator, Dict, Iterable, List, Mapping, Sequence, Tuple

import httpx
from fastapi.responses import Response, StreamingResponse

from .classifier import Disposition, DispositionKind, InboundRequest, is_snapshot_path
from .errors import (
    ForbiddenMethodError,
    StreamCopyError,
    UnsupportedMethodError,
    UpstreamError,
    UpstreamUnreachableError,
)
from .policy import MethodPolicy
from .transport import ProxyTransport, build_upstream_request, iter_response_bytes

logger = logging.getLogger(__name__)

RawHeaders = List[Tuple[bytes, bytes]]

_FRAMING_HEADERS = {b"content-length", b"transfer-encoding"}

# RFC 3986 pchar plus "/", so plain archive names pass through unchanged
_FILENAME_SAFE = "/:@!$&'()*+,;=-._~"

_SNAPSHOT_HEADERS = {
    b"content-type": b"application/octet-stream",
    b"content-length": b"0",
}


def copy_headers(headers: Iterable[Tuple[bytes, bytes]]) -> RawHeaders:
    return [(bytes(name), bytes(value)) for name, value in headers]


def _without(headers: Sequence[Tuple[bytes, bytes]], names: Iterable[bytes]) -> RawHeaders:
    dropped = {name.lower() for name in names}
    return [(name, value) for name, value in headers if name.lower() not in dropped]


def _override(headers: Sequence[Tuple[bytes, bytes]], values: Mapping[bytes, bytes]) -> RawHeaders:
    # A declared empty body cannot also be chunked.
    result = _without(headers, set(values) | {b"transfer-encoding"})
    result.extend(values.items())
    return result


def _preview(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


class Forwarder:
    def __init__(
        self,
        policy: MethodPolicy,
        transport: ProxyTransport,
        upstream_url: str,
    ):
        self._policy = policy
        self._transport = transport
        self._upstream_url = upstream_url.rstrip("/")

    @property
    def upstream_url(self) -> str:
        return self._upstream_url

    def build_buffered_request(self, inbound: InboundRequest) -> httpx.Request:
        method = inbound.method.upper()
        headers = copy_headers(inbound.headers)
        if method == "POST":
            # Framing is re-derived from the buffered body.
            return build_upstream_request(
                method,
                self._upstream_url,
                _without(headers, {b"transfer-encoding"}),
                content=inbound.body,
            )
        if method == "GET":
            url = self._upstream_url
            if inbound.query:
                url = f"{url}?{inbound.query}"
            return build_upstream_request(
                method, url, _without(headers, _FRAMING_HEADERS)
            )
        raise UnsupportedMethodError(inbound.method)

    def build_download_request(self, inbound: InboundRequest) -> httpx.Request:
        url = f"{self._upstream_url}{inbound.path}"
        headers = copy_headers(inbound.headers)
        if is_snapshot_path(inbound.path):
            # Snapshot endpoints expect a POST handshake with no payload.
            return build_upstream_request(
                "POST", url, _override(headers, _SNAPSHOT_HEADERS), content=b""
            )
        return build_upstream_request("GET", url, _without(headers, _FRAMING_HEADERS))

    async def forward(self, inbound: InboundRequest, disposition: Disposition) -> Response:
        logger.debug("Received raw request body: %s", _preview(inbound.body))

        if disposition.kind is DispositionKind.RPC_CANDIDATE:
            rpc_method = disposition.rpc_method or ""
            logger.info("Requester IP: %s method=%s", inbound.client, rpc_method)
            if not self._policy.is_allowed(rpc_method):
                raise ForbiddenMethodError(rpc_method)

        request = self.build_buffered_request(inbound)
        try:
            upstream_response = await self._transport.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.warning("proxy upstream request failed: path=%s error=%r", inbound.path, exc)
            raise UpstreamUnreachableError(f"Failed to forward request: {exc}") from exc

        try:
            chunks = [chunk async for chunk in iter_response_bytes(upstream_response)]
        except httpx.HTTPError as exc:
            logger.warning("proxy upstream read failed: path=%s error=%r", inbound.path, exc)
            raise UpstreamError("Failed to read proxy response") from exc
        finally:
            await upstream_response.aclose()

        body = b"".join(chunks)
        logger.debug("Received raw response body: %s", _preview(body))
        return Response(
            content=body,
            status_code=upstream_response.status_code,
            media_type="application/json",
        )

    async def forward_file(self, inbound: InboundRequest) -> Response:
        path = inbound.path
        logger.info("Received file download request: %s", path)

        request = self.build_download_request(inbound)
        if request.method == "POST":
            logger.info("Forwarding snapshot download as POST: %s", path)

        try:
            upstream_response = await self._transport.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.error("Failed to download file: %s error=%r", path, exc)
            raise UpstreamUnreachableError("Failed to download file") from exc

        if upstream_response.status_code != 200:
            error_body = await self._read_error_body(upstream_response, path)
            logger.warning(
                "Proxy responded with error: %d - %s",
                upstream_response.status_code,
                error_body,
            )
            raise UpstreamError(
                f"Proxy error: {error_body}",
                status_code=upstream_response.status_code,
            )

        try:
            return StreamingResponse(
                self._iter_download(upstream_response, path),
                status_code=upstream_response.status_code,
                headers=self._download_headers(upstream_response, path),
            )
        except Exception:
            await upstream_response.aclose()
            raise

    @staticmethod
    def _download_headers(upstream_response: httpx.Response, path: str) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        content_type = upstream_response.headers.get("content-type")
        if content_type:
            headers["Content-Type"] = content_type
        content_length = upstream_response.headers.get("content-length")
        if content_length:
            headers["Content-Length"] = content_length
        # Header values must stay latin-1 encodable.
        headers["Content-Disposition"] = (
            f"attachment; filename={quote(path, safe=_FILENAME_SAFE)}"
        )
        return headers

    @staticmethod
    async def _read_error_body(upstream_response: httpx.Response, path: str) -> str:
        chunks: List[bytes] = []
        try:
            async for chunk in iter_response_bytes(upstream_response):
                chunks.append(chunk)
        except httpx.HTTPError as exc:
            logger.warning("proxy error body truncated: path=%s error=%r", path, exc)
        finally:
            await upstream_response.aclose()
        return _preview(b"".join(chunks))

    @staticmethod
    async def _copy_body(
        upstream_response: httpx.Response, path: str
    ) -> AsyncIterator[bytes]:
        try:
            async for chunk in iter_response_bytes(upstream_response):
                yield chunk
        except httpx.HTTPError as exc:
            raise StreamCopyError(path, exc) from exc

    async def _iter_download(
        self, upstream_response: httpx.Response, path: str
    ) -> AsyncIterator[bytes]:
        # Headers are already on the wire here; a failure only ends the body early.
        try:
            async for chunk in self._copy_body(upstream_response, path):
                yield chunk
        except StreamCopyError as exc:
            logger.error("Error streaming response: %s", exc.message)
        finally:
            await upstream_response.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()
