"""Tests for the MCP stdio server."""

from __future__ import annotations

import io
import json

import pytest

from yamo.mcp.server import StdioTransport, serve_stdio
from yamo.validation import compute_digest


def _lines(*messages: dict) -> io.BytesIO:
    return io.BytesIO(b"".join(json.dumps(m).encode("utf-8") + b"\n" for m in messages))


def _framed(*messages: dict) -> io.BytesIO:
    out = b""
    for m in messages:
        body = json.dumps(m).encode("utf-8")
        out += f"Content-Length: {len(body)}\r\n\r\n".encode("ascii") + body
    return io.BytesIO(out)


def _responses(stdout: io.BytesIO) -> dict:
    """Newline-delimited replies keyed by request id."""
    replies = [json.loads(line) for line in stdout.getvalue().splitlines() if line.strip()]
    return {r["id"]: r for r in replies}


def _request(request_id: int, method: str, params: dict | None = None) -> dict:
    msg = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        msg["params"] = params
    return msg


INITIALIZE = _request(1, "initialize", {"protocolVersion": "2025-03-26"})


@pytest.mark.asyncio
async def test_initialize_and_list_tools(dispatcher):
    stdout = io.BytesIO()
    code = await serve_stdio(dispatcher, _lines(INITIALIZE, _request(2, "tools/list")), stdout)

    assert code == 0
    replies = _responses(stdout)
    init = replies[1]["result"]
    assert init["protocolVersion"] == "2025-03-26"
    assert init["serverInfo"]["name"] == "yamo"
    names = [t["name"] for t in replies[2]["result"]["tools"]]
    assert names == [
        "yamo_submit_block",
        "yamo_get_block",
        "yamo_get_latest_block",
        "yamo_audit_block",
        "yamo_verify_block",
    ]


@pytest.mark.asyncio
async def test_tool_calls_return_envelopes(dispatcher):
    submit = _request(
        2,
        "tools/call",
        {
            "name": "yamo_submit_block",
            "arguments": {
                "blockId": "mcp_first",
                "contentHash": compute_digest("hello"),
                "consensusType": "mcp_generated",
                "ledger": "ipfs",
                "content": "hello",
            },
        },
    )
    stdout = io.BytesIO()
    await serve_stdio(dispatcher, _lines(INITIALIZE, submit), stdout)

    result = _responses(stdout)[2]["result"]
    assert result["isError"] is False
    envelope = json.loads(result["content"][0]["text"])
    assert envelope["success"] is True
    assert envelope["blockId"] == "mcp_first"

    stdout = io.BytesIO()
    audit = _request(3, "tools/call", {"name": "yamo_audit_block", "arguments": {"blockId": "mcp_first"}})
    await serve_stdio(dispatcher, _lines(INITIALIZE, audit), stdout)
    envelope = json.loads(_responses(stdout)[3]["result"]["content"][0]["text"])
    assert envelope["verified"] is True


@pytest.mark.asyncio
async def test_classified_tool_error_is_flagged(dispatcher):
    call = _request(
        2,
        "tools/call",
        {"name": "yamo_verify_block", "arguments": {"blockId": "x_y", "contentHash": "sha256:abc"}},
    )
    stdout = io.BytesIO()
    await serve_stdio(dispatcher, _lines(INITIALIZE, call), stdout)

    result = _responses(stdout)[2]["result"]
    assert result["isError"] is True
    assert json.loads(result["content"][0]["text"])["errorClass"] == "InvalidFormat"


@pytest.mark.asyncio
async def test_protocol_errors(dispatcher):
    stdout = io.BytesIO()
    await serve_stdio(
        dispatcher,
        _lines(
            _request(10, "tools/call", {"name": "yamo_get_latest_block"}),
            INITIALIZE,
            _request(3, "resources/list"),
            _request(4, "tools/call", {"name": 42}),
        ),
        stdout,
    )

    replies = _responses(stdout)
    assert replies[10]["error"]["code"] == -32602
    assert "not initialized" in replies[10]["error"]["message"]
    assert replies[3]["error"]["code"] == -32601
    assert replies[4]["error"]["code"] == -32602


@pytest.mark.asyncio
async def test_notifications_get_no_reply_and_exit_stops(dispatcher):
    stdout = io.BytesIO()
    code = await serve_stdio(
        dispatcher,
        _lines(
            INITIALIZE,
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "method": "exit"},
            _request(9, "tools/list"),
        ),
        stdout,
    )

    assert code == 0
    assert list(_responses(stdout)) == [1]


@pytest.mark.asyncio
async def test_parse_error_is_reported_and_loop_continues(dispatcher):
    stdin = io.BytesIO(b"{not json}\n" + json.dumps(_request(2, "ping")).encode("utf-8") + b"\n")
    stdout = io.BytesIO()
    await serve_stdio(dispatcher, stdin, stdout)

    raw = [json.loads(line) for line in stdout.getvalue().splitlines()]
    assert raw[0]["error"]["code"] == -32700
    assert raw[1] == {"jsonrpc": "2.0", "id": 2, "result": {}}


@pytest.mark.asyncio
async def test_non_object_messages_are_invalid_requests(dispatcher):
    ping = json.dumps(_request(2, "ping")).encode("utf-8")
    stdin = io.BytesIO(b'[1, 2]\n42\n"hello"\n' + ping + b"\n")
    stdout = io.BytesIO()
    code = await serve_stdio(dispatcher, stdin, stdout)

    assert code == 0
    raw = [json.loads(line) for line in stdout.getvalue().splitlines()]
    assert [r["error"]["code"] for r in raw[:3]] == [-32600, -32600, -32600]
    assert all(r["id"] is None for r in raw[:3])
    assert raw[3] == {"jsonrpc": "2.0", "id": 2, "result": {}}


@pytest.mark.asyncio
async def test_content_length_framing_is_mirrored(dispatcher):
    stdout = io.BytesIO()
    await serve_stdio(dispatcher, _framed(INITIALIZE), stdout)

    data = stdout.getvalue()
    assert data.startswith(b"Content-Length: ")
    header, body = data.split(b"\r\n\r\n", 1)
    assert int(header.split(b":")[1]) == len(body)
    assert json.loads(body)["result"]["serverInfo"]["name"] == "yamo"


def test_transport_reads_newline_delimited_after_blank_lines():
    transport = StdioTransport(io.BytesIO(b"\n\n" + json.dumps({"id": 1}).encode("utf-8") + b"\n"), io.BytesIO())
    assert transport.read_message() == {"id": 1}
    assert transport.use_lsp_framing is False
    assert transport.read_message() is None
