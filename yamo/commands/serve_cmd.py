"""`yamo serve`: MCP server over stdio."""

from __future__ import annotations

import asyncio
import sys

from ..config import Settings
from ..mcp.server import serve_stdio
from ..tools import create_dispatcher


def run_serve(settings: Settings) -> int:
    dispatcher = create_dispatcher(settings)
    return asyncio.run(serve_stdio(dispatcher, sys.stdin.buffer, sys.stdout.buffer))
