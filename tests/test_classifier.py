import json

import pytest

from rpcgate.proxy import (
    DispositionKind,
    classify,
    classify_path,
    is_download_path,
    is_snapshot_path,
    parse_envelope,
)

RPC_BODY = json.dumps({"jsonrpc": "2.0", "id": 1, "method": "getHealth", "params": []}).encode()


@pytest.mark.parametrize(
    "path",
    [
        "/genesis.tar.bz2",
        "/snapshot-123",
        "/snapshot-100-abc.tar.zst",
        "/incremental-snapshot-100-200-xyz.tar.zst",
        "/incremental-snapshot",
    ],
)
def test_download_paths(path):
    assert is_download_path(path)
    assert classify_path(path).kind is DispositionKind.FILE_DOWNLOAD


@pytest.mark.parametrize(
    "path",
    ["/", "/genesis.tar.bz2.sha256", "/genesis", "/snapshot", "/a/snapshot-1", "/Snapshot-1"],
)
def test_other_paths_are_not_downloads(path):
    assert not is_download_path(path)
    assert classify_path(path) is None


def test_only_snapshot_prefixes_select_the_post_handshake():
    assert is_snapshot_path("/snapshot-1.tar.zst")
    assert is_snapshot_path("/incremental-snapshot-1-2.tar.zst")
    assert not is_snapshot_path("/genesis.tar.bz2")


@pytest.mark.parametrize("body", [b"", RPC_BODY, b"{broken", b"\x00\xff"])
def test_download_path_wins_over_any_body(body):
    assert classify("/snapshot-123", body).kind is DispositionKind.FILE_DOWNLOAD


def test_rpc_body_yields_method_name():
    disposition = classify("/", RPC_BODY)
    assert disposition.kind is DispositionKind.RPC_CANDIDATE
    assert disposition.rpc_method == "getHealth"


@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"{broken",
        b"[]",
        b'[{"method": "getHealth"}]',
        b'"getHealth"',
        b"42",
        b'{"method": 5}',
        b'{"jsonrpc": 2, "method": "getHealth"}',
        b"\xff\xfe{}",
        b'{"method": NaN}',
    ],
)
def test_unparseable_bodies_are_opaque(body):
    disposition = classify("/", body)
    assert disposition.kind is DispositionKind.OPAQUE_FORWARD
    assert disposition.rpc_method is None


def test_object_without_method_is_rpc_candidate_with_empty_name():
    disposition = classify("/", b'{"jsonrpc": "2.0", "id": 7}')
    assert disposition.kind is DispositionKind.RPC_CANDIDATE
    assert disposition.rpc_method == ""


def test_json_null_is_rpc_candidate_with_empty_name():
    assert classify("/", b"null").rpc_method == ""


def test_envelope_keeps_id_and_params_opaque():
    body = json.dumps({
        "jsonrpc": "2.0",
        "id": {"nested": [1, "two"]},
        "method": "getBlock",
        "params": [5, {"encoding": "json"}],
        "extra": True,
    }).encode()

    envelope = parse_envelope(body)

    assert envelope.method == "getBlock"
    assert envelope.id == {"nested": [1, "two"]}
    assert envelope.params == [5, {"encoding": "json"}]


def test_invalid_utf8_inside_a_string_still_exposes_the_method():
    body = b'{"jsonrpc":"2.0","id":1,"method":"getBlock","params":[],"x":"\xff"}'

    disposition = classify("/", body)

    assert disposition.kind is DispositionKind.RPC_CANDIDATE
    assert disposition.rpc_method == "getBlock"


def test_invalid_utf8_in_the_method_name_is_replaced():
    disposition = classify("/", b'{"method":"get\xffBlock"}')

    assert disposition.kind is DispositionKind.RPC_CANDIDATE
    assert disposition.rpc_method == "get\ufffdBlock"


def test_stray_byte_outside_strings_is_opaque():
    assert classify("/", b'{"method":"getBlock"}\xff').kind is DispositionKind.OPAQUE_FORWARD


@pytest.mark.parametrize(
    "body",
    [
        b"[" * 100000 + b"]" * 100000,
        b'{"a":' * 100000 + b"1" + b"}" * 100000,
        b'{"method":"getBlock","params":' + b"[" * 100000 + b"]" * 100000 + b"}",
    ],
)
def test_deeply_nested_bodies_are_opaque(body):
    disposition = classify("/", body)
    assert disposition.kind is DispositionKind.OPAQUE_FORWARD
