from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

LISTEN_HOST_ENV = "RPCGATE_LISTEN_HOST"
LISTEN_PORT_ENV = "RPCGATE_LISTEN_PORT"
UPSTREAM_URL_ENV = "RPCGATE_UPSTREAM_URL"
CONFIG_PATH_ENV = "RPCGATE_CONFIG_PATH"
PROXY_TIMEOUT_SECS_ENV = "RPCGATE_PROXY_TIMEOUT_SECS"
LOG_LEVEL_ENV = "RPCGATE_LOG_LEVEL"

DEFAULT_LISTEN_HOST = "0.0.0.0"
DEFAULT_LISTEN_PORT = 14705
DEFAULT_UPSTREAM_URL = "http://localhost:8899"
DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_PROXY_TIMEOUT_SECS = 300.0
DEFAULT_LOG_LEVEL = "INFO"


def _source(environ: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return environ if environ is not None else os.environ


def _get_str(environ: Optional[Mapping[str, str]], name: str, default: str) -> str:
    value = _source(environ).get(name, "").strip()
    return value or default


def get_proxy_timeout_secs(environ: Optional[Mapping[str, str]] = None) -> float:
    raw = _source(environ).get(PROXY_TIMEOUT_SECS_ENV, str(int(DEFAULT_PROXY_TIMEOUT_SECS)))
    try:
        value = float(raw)
        if value <= 0:
            return DEFAULT_PROXY_TIMEOUT_SECS
        return value
    except (TypeError, ValueError):
        return DEFAULT_PROXY_TIMEOUT_SECS


def get_listen_port(environ: Optional[Mapping[str, str]] = None) -> int:
    raw = _source(environ).get(LISTEN_PORT_ENV, str(DEFAULT_LISTEN_PORT))
    try:
        value = int(raw)
        if value <= 0 or value > 65535:
            return DEFAULT_LISTEN_PORT
        return value
    except (TypeError, ValueError):
        return DEFAULT_LISTEN_PORT


def get_upstream_url(environ: Optional[Mapping[str, str]] = None) -> str:
    return _get_str(environ, UPSTREAM_URL_ENV, DEFAULT_UPSTREAM_URL).rstrip("/")


@dataclass(frozen=True)
class ProxySettings:
    listen_host: str = DEFAULT_LISTEN_HOST
    listen_port: int = DEFAULT_LISTEN_PORT
    upstream_url: str = DEFAULT_UPSTREAM_URL
    config_path: str = DEFAULT_CONFIG_PATH
    proxy_timeout_secs: float = DEFAULT_PROXY_TIMEOUT_SECS
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "ProxySettings":
        return cls(
            listen_host=_get_str(environ, LISTEN_HOST_ENV, DEFAULT_LISTEN_HOST),
            listen_port=get_listen_port(environ),
            upstream_url=get_upstream_url(environ),
            config_path=_get_str(environ, CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH),
            proxy_timeout_secs=get_proxy_timeout_secs(environ),
            log_level=_get_str(environ, LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).upper(),
        )
