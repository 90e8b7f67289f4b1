"""
rpcgate - entry point

Builds the FastAPI application that sits in front of the upstream node, admits
JSON-RPC calls according to the method policy and relays genesis and snapshot
downloads as streams.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Mapping, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.requests import ClientDisconnect

from . import __version__
from .config import ProxySettings
from .logging_setup import setup_logging
from .proxy import (
    ConfigError,
    Forwarder,
    InboundRequest,
    MethodPolicy,
    ProxyError,
    ProxyTransport,
    RequestBodyError,
    classify_body,
    classify_path,
)

logger = logging.getLogger(__name__)

_PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


def _client_address(request: Request) -> str:
    if request.client is None:
        return ""
    return f"{request.client.host}:{request.client.port}"


def _inbound_from(request: Request, body: bytes = b"") -> InboundRequest:
    return InboundRequest(
        method=request.method,
        path=request.url.path,
        query=request.url.query,
        headers=list(request.headers.raw),
        body=body,
        client=_client_address(request),
    )


async def _proxy_error_handler(request: Request, exc: ProxyError) -> Response:
    logger.warning(
        "proxy request failed: method=%s path=%s status=%d reason=%s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.message,
    )
    # Informational, 204 and 304 responses cannot carry a body.
    content = "" if exc.status_code < 200 or exc.status_code in (204, 304) else f"{exc.message}\n"
    return PlainTextResponse(
        content,
        status_code=exc.status_code,
        headers={"X-Content-Type-Options": "nosniff"},
    )


async def _proxy_request(request: Request, forwarder: Forwarder) -> Response:
    if classify_path(request.url.path) is not None:
        return await forwarder.forward_file(_inbound_from(request))

    try:
        body = await request.body()
    except ClientDisconnect as exc:
        raise RequestBodyError() from exc

    return await forwarder.forward(_inbound_from(request, body), classify_body(body))


def create_app(
    policy: MethodPolicy,
    settings: Optional[ProxySettings] = None,
    transport: Optional[ProxyTransport] = None,
) -> FastAPI:
    settings = settings if settings is not None else ProxySettings()
    forwarder = Forwarder(
        policy=policy,
        transport=transport if transport is not None else ProxyTransport(settings.proxy_timeout_secs),
        upstream_url=settings.upstream_url,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("proxy started: upstream=%s", forwarder.upstream_url)
        try:
            yield
        finally:
            await forwarder.aclose()
            logger.info("proxy transport closed")

    # Documentation routes are off so that every path reaches the upstream.
    app = FastAPI(
        title="rpcgate",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.forwarder = forwarder
    app.state.policy = policy
    app.add_exception_handler(ProxyError, _proxy_error_handler)

    @app.api_route("/{path:path}", methods=_PROXY_METHODS)
    async def proxy(request: Request) -> Response:
        return await _proxy_request(request, forwarder)

    return app


def run(environ: Optional[Mapping[str, str]] = None) -> None:
    settings = ProxySettings.from_environ(environ)
    setup_logging(settings.log_level)

    try:
        policy = MethodPolicy.from_file(settings.config_path)
    except ConfigError as exc:
        logger.critical("Error loading config: %s", exc.message)
        sys.exit(1)

    app = create_app(policy, settings)
    logger.info("Listening on port %d...", settings.listen_port)
    uvicorn.run(
        app,
        host=settings.listen_host,
        port=settings.listen_port,
        log_level=logging.getLogger().getEffectiveLevel(),
    )
    logger.info("Server shut down")


if __name__ == "__main__":
    run()
