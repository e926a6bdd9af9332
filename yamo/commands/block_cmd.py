"""Block tool CLI commands.

Each command runs the matching tool through the dispatcher, so the CLI and
the MCP server produce identical envelopes.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from rich.console import Console

from ..config import Settings
from ..tools import Tool, ToolResponse, create_dispatcher
from ..validation import compute_digest


def _print(response: ToolResponse, *, output_json: bool) -> None:
    text = json.dumps(response.payload, ensure_ascii=False, indent=2)
    if output_json:
        print(text)
    else:
        Console().print_json(text)


def _exit_code(response: ToolResponse) -> int:
    if not response.success or response.is_error:
        return 1
    return 1 if response.payload.get("verified") is False else 0


def run_tool(settings: Settings, tool: Tool, arguments: dict[str, Any], *, output_json: bool = False) -> int:
    dispatcher = create_dispatcher(settings)
    response = asyncio.run(dispatcher.dispatch(tool.value, arguments))
    _print(response, output_json=output_json)
    return _exit_code(response)


def parse_file_option(value: str) -> dict[str, str]:
    """NAME=CONTENT, where CONTENT is literal text or a path."""
    name, sep, content = value.partition("=")
    if not sep or not name:
        raise ValueError(f"--file expects NAME=CONTENT (got {value!r})")
    return {"name": name, "content": content}


def run_submit(
    settings: Settings,
    *,
    block_id: str,
    content_hash: str | None,
    consensus_type: str,
    ledger: str,
    previous_block: str | None = None,
    content: str | None = None,
    files: list[str] | None = None,
    encryption_key: str | None = None,
    output_json: bool = False,
) -> int:
    arguments: dict[str, Any] = {
        "blockId": block_id,
        "contentHash": content_hash or (compute_digest(content) if content else None),
        "consensusType": consensus_type,
        "ledger": ledger,
        "previousBlock": previous_block,
        "content": content,
        "files": [parse_file_option(f) for f in files or []],
        "encryptionKey": encryption_key,
    }
    return run_tool(settings, Tool.SUBMIT_BLOCK, arguments, output_json=output_json)


def run_hash(path: Path | None, text: str | None) -> int:
    err = Console(stderr=True)
    if (path is None) == (text is None):
        err.print("Provide exactly one of FILE or --text", style="bold red")
        return 2
    if path is not None:
        text = path.read_text(encoding="utf-8")
    print(compute_digest(text))
    return 0
