"""MCP server for YAMO block tools.

Implements a minimal MCP-over-stdio JSON-RPC loop. Tool calls run as
independent asyncio tasks, so a slow ledger or content-store call does not
hold up other requests; responses carry their request id.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from .. import __version__
from ..tools import ToolDispatcher

logger = logging.getLogger(__name__)

DEFAULT_PROTOCOL_VERSION = "2024-11-05"


def _jsonrpc_error(code: int, message: str, *, request_id: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def _jsonrpc_result(result: Any, *, request_id: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _server_info() -> dict[str, Any]:
    return {"name": "yamo", "version": __version__}


class StdioTransport:
    """
    JSON-RPC message framing over binary stdio streams.

    MCP clients vary on stdio framing. Some use LSP-style Content-Length
    headers, others send newline-delimited JSON. The framing is autodetected
    from the first message received and mirrored in responses.
    """

    def __init__(self, stdin: Any, stdout: Any):
        self.stdin = stdin
        self.stdout = stdout
        self.use_lsp_framing: bool | None = None

    def read_message(self) -> dict[str, Any] | None:
        """Read one JSON-RPC message; None at end of stream."""
        first = self.stdin.readline()
        while first and not first.strip():
            first = self.stdin.readline()
        if not first:
            return None

        if first.lower().startswith(b"content-length:"):
            if self.use_lsp_framing is None:
                self.use_lsp_framing = True
            headers: dict[str, str] = {}
            line = first
            while line and line.strip():
                try:
                    k, v = line.decode("ascii", errors="ignore").split(":", 1)
                    headers[k.strip().lower()] = v.strip()
                except ValueError:
                    pass
                line = self.stdin.readline()

            try:
                length = int(headers.get("content-length", "0"))
            except ValueError:
                length = 0
            if length <= 0:
                return None
            body = self.stdin.read(length)
            return json.loads(body.decode("utf-8"))

        if self.use_lsp_framing is None:
            self.use_lsp_framing = False
        return json.loads(first.decode("utf-8"))

    def write_message(self, message: dict[str, Any]) -> None:
        body = json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

        # Default to LSP framing if we haven't yet seen a request (should be rare).
        use_lsp = True if self.use_lsp_framing is None else self.use_lsp_framing

        if use_lsp:
            self.stdout.write(f"Content-Length: {len(body)}\r\n\r\n".encode("ascii"))
            self.stdout.write(body)
        else:
            self.stdout.write(body + b"\n")
        self.stdout.flush()


class McpServer:
    def __init__(self, dispatcher: ToolDispatcher, transport: StdioTransport):
        self.dispatcher = dispatcher
        self.transport = transport
        self.initialized = False
        self._pending: set[asyncio.Task[None]] = set()

    def _reply(self, result: Any, request_id: Any) -> None:
        self.transport.write_message(_jsonrpc_result(result, request_id=request_id))

    async def _call_tool(self, name: str, arguments: dict[str, Any], request_id: Any) -> None:
        try:
            response = await self.dispatcher.dispatch(name, arguments)
        except Exception as e:
            logger.exception("Tool call %s crashed", name)
            self.transport.write_message(_jsonrpc_error(-32603, str(e), request_id=request_id))
            return
        self._reply(response.to_mcp(), request_id)

    def _handle(self, method: Any, params: Any, request_id: Any) -> None:
        if method == "initialize":
            self.initialized = True
            requested_version = params.get("protocolVersion") if isinstance(params, dict) else None
            protocol_version = (
                requested_version.strip()
                if isinstance(requested_version, str) and requested_version.strip()
                else DEFAULT_PROTOCOL_VERSION
            )
            self._reply(
                {
                    "protocolVersion": protocol_version,
                    "capabilities": {"tools": {"listChanged": False}},
                    "serverInfo": _server_info(),
                },
                request_id,
            )
            return

        if method == "ping":
            self._reply({}, request_id)
            return

        if method == "shutdown":
            self._reply(None, request_id)
            return

        if method == "tools/list":
            self._reply({"tools": self.dispatcher.tool_definitions()}, request_id)
            return

        if method == "tools/call":
            if not self.initialized:
                raise ValueError("Server not initialized")
            if not isinstance(params, dict):
                raise ValueError("params must be an object")
            tool_name = params.get("name")
            arguments = params.get("arguments") or {}
            if not isinstance(tool_name, str):
                raise ValueError("tools/call requires name")
            if not isinstance(arguments, dict):
                raise ValueError("tools/call arguments must be an object")
            task = asyncio.create_task(self._call_tool(tool_name, arguments, request_id))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return

        self.transport.write_message(_jsonrpc_error(-32601, f"Method not found: {method}", request_id=request_id))

    async def serve(self) -> int:
        try:
            while True:
                try:
                    msg = await asyncio.to_thread(self.transport.read_message)
                except (json.JSONDecodeError, UnicodeDecodeError) as e:
                    self.transport.write_message(_jsonrpc_error(-32700, f"Parse error: {e}", request_id=None))
                    continue
                if msg is None:
                    return 0
                if not isinstance(msg, dict):
                    # Batches and bare JSON values are not supported.
                    self.transport.write_message(
                        _jsonrpc_error(-32600, "Invalid Request: expected a JSON object", request_id=None)
                    )
                    continue

                request_id = msg.get("id")
                method = msg.get("method")
                params = msg.get("params") or {}

                # Notifications (no id) must not receive responses.
                if request_id is None:
                    if method == "exit":
                        return 0
                    continue

                try:
                    self._handle(method, params, request_id)
                except ValueError as e:
                    self.transport.write_message(_jsonrpc_error(-32602, str(e), request_id=request_id))
                except Exception as e:
                    logger.exception("Request %s failed", method)
                    self.transport.write_message(_jsonrpc_error(-32603, str(e), request_id=request_id))
        finally:
            if self._pending:
                await asyncio.gather(*self._pending, return_exceptions=True)


async def serve_stdio(dispatcher: ToolDispatcher, stdin: Any, stdout: Any) -> int:
    """Run the server until end of input or an exit notification."""
    server = McpServer(dispatcher, StdioTransport(stdin, stdout))
    logger.info("YAMO MCP server v%s running on stdio", __version__)
    return await server.serve()
