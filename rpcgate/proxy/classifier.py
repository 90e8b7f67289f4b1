from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

GENESIS_ARCHIVE_PATH = "/genesis.tar.bz2"
SNAPSHOT_PREFIX = "/snapshot-"
INCREMENTAL_SNAPSHOT_PREFIX = "/incremental-snapshot"

RawHeaders = List[Tuple[bytes, bytes]]


class DispositionKind(str, enum.Enum):
    FILE_DOWNLOAD = "file_download"
    RPC_CANDIDATE = "rpc_candidate"
    OPAQUE_FORWARD = "opaque_forward"


@dataclass(frozen=True)
class Disposition:
    kind: DispositionKind
    rpc_method: Optional[str] = None


@dataclass(frozen=True)
class InboundRequest:
    method: str
    path: str
    query: str = ""
    headers: RawHeaders = field(default_factory=list)
    body: bytes = b""
    client: str = ""


class RPCEnvelope(BaseModel):
    """JSON-RPC request view; ``id`` and ``params`` are carried but never read."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: Optional[str] = None
    id: Any = None
    method: Optional[str] = None
    params: Any = None


def _reject_constant(token: str) -> Any:
    raise ValueError(f"invalid JSON constant: {token}")


def is_snapshot_path(path: str) -> bool:
    return path.startswith(SNAPSHOT_PREFIX) or path.startswith(
        INCREMENTAL_SNAPSHOT_PREFIX
    )


def is_download_path(path: str) -> bool:
    return path == GENESIS_ARCHIVE_PATH or is_snapshot_path(path)


def parse_envelope(body: bytes) -> Optional[RPCEnvelope]:
    if not body:
        return None
    try:
        # Invalid UTF-8 inside strings decodes to U+FFFD instead of hiding the method.
        data = json.loads(
            body.decode("utf-8", errors="replace"), parse_constant=_reject_constant
        )
    except (ValueError, RecursionError):
        return None
    if data is None:
        return RPCEnvelope()
    if not isinstance(data, dict):
        return None
    try:
        return RPCEnvelope.model_validate(data)
    except ValidationError:
        return None


def classify_path(path: str) -> Optional[Disposition]:
    if is_download_path(path):
        return Disposition(DispositionKind.FILE_DOWNLOAD)
    return None


def classify_body(body: bytes) -> Disposition:
    envelope = parse_envelope(body)
    if envelope is None:
        return Disposition(DispositionKind.OPAQUE_FORWARD)
    return Disposition(DispositionKind.RPC_CANDIDATE, rpc_method=envelope.method or "")


def classify(path: str, body: bytes = b"") -> Disposition:
    # Path decides first so a download never depends on its body.
    by_path = classify_path(path)
    if by_path is not None:
        return by_path
    return classify_body(body)
