"""MCP stdio server exposing the block tools."""

from .server import McpServer, StdioTransport, serve_stdio

__all__ = ["McpServer", "StdioTransport", "serve_stdio"]
