from __future__ import annotations

from typing import Optional


class ProxyError(RuntimeError):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigError(ProxyError):
    pass


class RequestBodyError(ProxyError):
    def __init__(self) -> None:
        super().__init__("Unable to read request body")


class UnsupportedMethodError(ProxyError):
    def __init__(self, method: str):
        super().__init__(
            f"Failed to forward request: unsupported HTTP method: {method}"
        )
        self.method = method


class ForbiddenMethodError(ProxyError):
    status_code = 403

    def __init__(self, rpc_method: str):
        super().__init__("Method not allowed")
        self.rpc_method = rpc_method


class UpstreamUnreachableError(ProxyError):
    pass


class UpstreamError(ProxyError):
    pass


class StreamCopyError(ProxyError):
    """Raised when a download body fails after its headers were already sent."""

    def __init__(self, path: str, cause: BaseException):
        super().__init__(f"Error streaming response for {path}: {cause}")
        self.path = path
