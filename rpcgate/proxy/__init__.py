"""Request classification and forwarding building blocks."""

from .classifier import (
    GENESIS_ARCHIVE_PATH,
    Disposition,
    DispositionKind,
    InboundRequest,
    RPCEnvelope,
    classify,
    classify_body,
    classify_path,
    is_download_path,
    is_snapshot_path,
    parse_envelope,
)
from .errors import (
    ConfigError,
    ForbiddenMethodError,
    ProxyError,
    RequestBodyError,
    StreamCopyError,
    UnsupportedMethodError,
    UpstreamError,
    UpstreamUnreachableError,
)
from .forwarder import Forwarder
from .policy import MethodPolicy
from .transport import ProxyTransport, build_upstream_request

__all__ = [
    "GENESIS_ARCHIVE_PATH",
    "Disposition",
    "DispositionKind",
    "InboundRequest",
    "RPCEnvelope",
    "classify",
    "classify_body",
    "classify_path",
    "is_download_path",
    "is_snapshot_path",
    "parse_envelope",
    "ConfigError",
    "ForbiddenMethodError",
    "ProxyError",
    "RequestBodyError",
    "StreamCopyError",
    "UnsupportedMethodError",
    "UpstreamError",
    "UpstreamUnreachableError",
    "Forwarder",
    "MethodPolicy",
    "ProxyTransport",
    "build_upstream_request",
]
