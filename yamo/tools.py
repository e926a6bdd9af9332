"""
Tool surface: the five block operations and their envelopes.

Each Tool member maps to exactly one handler. The dispatcher refuses to
start with an incomplete mapping, and every outcome (success, classified
error, unexpected exception) becomes a ToolResponse envelope.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

from .audit import AuditEngine
from .content.store import LocalContentStore
from .errors import ErrorClass, ExternalFailure, InvalidFormat, YamoError
from .files import FileMaterializer
from .ledger import LedgerClient, open_ledger
from .models import FileInput
from .submission import SubmissionOrchestrator
from .validation import (
    CONSENSUS_TYPES,
    canonical_digest,
    normalize_digest,
    validate_digest,
)

logger = logging.getLogger(__name__)

_DIGEST_PATTERN = "^0x[a-fA-F0-9]{64}$"


class Tool(str, Enum):
    SUBMIT_BLOCK = "yamo_submit_block"
    GET_BLOCK = "yamo_get_block"
    GET_LATEST_BLOCK = "yamo_get_latest_block"
    AUDIT_BLOCK = "yamo_audit_block"
    VERIFY_BLOCK = "yamo_verify_block"

    @property
    def definition(self) -> dict[str, Any]:
        description, schema = _DEFINITIONS[self]
        return {"name": self.value, "description": description, "inputSchema": schema}


_DEFINITIONS: dict[Tool, tuple[str, dict[str, Any]]] = {
    Tool.SUBMIT_BLOCK: (
        "Submit a YAMO block to the ledger.\n\n"
        "- blockId: {origin}_{workflow}, e.g. 'claude_chain'\n"
        "- contentHash: 0x + 64 hex chars, no algorithm prefixes like 'sha256:'\n"
        "- previousBlock: parent contentHash; if omitted the latest accepted block is used, "
        "or the all-zero genesis hash on an empty ledger\n"
        "- content/files are bundled into the content store when content is given; "
        "a file's content may be literal text or a path inside the allowed directory",
        {
            "type": "object",
            "properties": {
                "blockId": {"type": "string", "description": "Block id: {origin}_{workflow}"},
                "previousBlock": {"type": "string", "pattern": _DIGEST_PATTERN},
                "contentHash": {"type": "string", "pattern": _DIGEST_PATTERN},
                "consensusType": {"type": "string", "enum": list(CONSENSUS_TYPES)},
                "ledger": {"type": "string", "description": "Distributed storage reference (e.g. 'ipfs')"},
                "content": {"type": "string", "description": "Optional full block text to anchor"},
                "encryptionKey": {
                    "type": "string",
                    "description": "Optional strong key (12+ chars, mixed types) to encrypt the bundle",
                },
                "files": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {"name": {"type": "string"}, "content": {"type": "string"}},
                        "required": ["name", "content"],
                    },
                },
            },
            "required": ["blockId", "contentHash", "consensusType", "ledger"],
        },
    ),
    Tool.GET_BLOCK: (
        "Fetch a block record by id (parent hash, submitter, content hash, timestamp, content reference).",
        {
            "type": "object",
            "properties": {"blockId": {"type": "string"}},
            "required": ["blockId"],
        },
    ),
    Tool.GET_LATEST_BLOCK: (
        "Fetch the most recently accepted block; its contentHash is the next submission's previousBlock.",
        {"type": "object", "properties": {}},
    ),
    Tool.AUDIT_BLOCK: (
        "Integrity audit: download the block's bundle, recompute its SHA-256 and compare with the "
        "on-chain hash. verified is null when the block has no content reference. "
        "Provide encryptionKey for encrypted bundles.",
        {
            "type": "object",
            "properties": {"blockId": {"type": "string"}, "encryptionKey": {"type": "string"}},
            "required": ["blockId"],
        },
    ),
    Tool.VERIFY_BLOCK: (
        "Quick check of a hash against the on-chain record (no content download). "
        "Use yamo_audit_block for a full content audit.",
        {
            "type": "object",
            "properties": {"blockId": {"type": "string"}, "contentHash": {"type": "string"}},
            "required": ["blockId", "contentHash"],
        },
    ),
}


@dataclass(frozen=True)
class ToolResponse:
    payload: dict[str, Any]
    is_error: bool = False

    @property
    def success(self) -> bool:
        return bool(self.payload.get("success"))

    def to_mcp(self) -> dict[str, Any]:
        text = json.dumps(self.payload, ensure_ascii=False, indent=2)
        return {"content": [{"type": "text", "text": text}], "isError": self.is_error}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_response(tool: str, message: str, error_class: ErrorClass, hint: str | None = None) -> ToolResponse:
    payload: dict[str, Any] = {
        "success": False,
        "error": message,
        "errorClass": error_class.value,
        "tool": tool,
        "timestamp": _now(),
    }
    if hint:
        payload["hint"] = hint
    return ToolResponse(payload, is_error=True)


def _require_str(arguments: dict[str, Any], key: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidFormat(f"{key} must be a non-empty string")
    return value


def _optional_str(arguments: dict[str, Any], key: str) -> str | None:
    value = arguments.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidFormat(f"{key} must be a string")
    return value


def _file_inputs(arguments: dict[str, Any]) -> list[FileInput]:
    files = arguments.get("files") or []
    if not isinstance(files, list):
        raise InvalidFormat("files must be an array")
    inputs = []
    for i, item in enumerate(files):
        if not isinstance(item, dict) or "name" not in item or "content" not in item:
            raise InvalidFormat(f"files[{i}] must be an object with name and content")
        inputs.append(FileInput(name=item["name"], content=item["content"]))
    return inputs


Handler = Callable[[dict[str, Any]], Awaitable[ToolResponse]]


class ToolDispatcher:
    def __init__(
        self,
        ledger: LedgerClient,
        orchestrator: SubmissionOrchestrator,
        audit_engine: AuditEngine,
    ):
        self.ledger = ledger
        self.orchestrator = orchestrator
        self.audit_engine = audit_engine
        self._handlers = self._handler_table()
        missing = [t.value for t in Tool if t not in self._handlers]
        if missing:
            raise RuntimeError(f"No handler for tools: {', '.join(missing)}")

    def _handler_table(self) -> dict[Tool, Handler]:
        return {
            Tool.SUBMIT_BLOCK: self._submit_block,
            Tool.GET_BLOCK: self._get_block,
            Tool.GET_LATEST_BLOCK: self._get_latest_block,
            Tool.AUDIT_BLOCK: self._audit_block,
            Tool.VERIFY_BLOCK: self._verify_block,
        }

    @staticmethod
    async def _query(awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except YamoError:
            raise
        except Exception as e:
            raise ExternalFailure(f"Ledger query failed: {e}") from e

    @staticmethod
    def tool_definitions() -> list[dict[str, Any]]:
        return [t.definition for t in Tool]

    async def dispatch(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResponse:
        try:
            tool = Tool(name)
        except ValueError:
            return error_response(str(name), f"Unknown tool: {name}", ErrorClass.INVALID_FORMAT)

        arguments = arguments or {}
        try:
            return await self._handlers[tool](arguments)
        except YamoError as e:
            logger.info("%s failed (%s): %s", tool.value, e.error_class.value, e)
            return error_response(tool.value, str(e), e.error_class, e.hint)
        except Exception as e:
            logger.exception("%s failed unexpectedly", tool.value)
            return error_response(tool.value, str(e), ErrorClass.UNKNOWN)

    async def _submit_block(self, arguments: dict[str, Any]) -> ToolResponse:
        result = await self.orchestrator.submit(
            block_id=_require_str(arguments, "blockId"),
            content_hash=_require_str(arguments, "contentHash"),
            consensus_type=_require_str(arguments, "consensusType"),
            ledger_ref=_require_str(arguments, "ledger"),
            previous_block=_optional_str(arguments, "previousBlock"),
            content=_optional_str(arguments, "content"),
            files=_file_inputs(arguments),
            encryption_key=_optional_str(arguments, "encryptionKey"),
        )
        return ToolResponse({"success": True, **result.to_envelope()})

    async def _get_block(self, arguments: dict[str, Any]) -> ToolResponse:
        block_id = _require_str(arguments, "blockId")
        block = await self._query(self.ledger.get_block(block_id))
        if block is None:
            return ToolResponse(
                {
                    "success": False,
                    "error": "Block not found on-chain",
                    "errorClass": ErrorClass.NOT_FOUND.value,
                    "blockId": block_id,
                    "hint": "Verify the blockId or check if the block was submitted",
                }
            )
        return ToolResponse({"success": True, "block": block.to_envelope()})

    async def _get_latest_block(self, arguments: dict[str, Any]) -> ToolResponse:
        block = await self._query(self.ledger.get_latest_block())
        if block is None:
            return ToolResponse(
                {
                    "success": False,
                    "error": "No blocks found on-chain",
                    "errorClass": ErrorClass.NOT_FOUND.value,
                    "hint": "The chain may be empty. Try submitting a genesis block first.",
                }
            )
        return ToolResponse({"success": True, "block": block.to_envelope()})

    async def _audit_block(self, arguments: dict[str, Any]) -> ToolResponse:
        result = await self.audit_engine.audit(
            _require_str(arguments, "blockId"),
            _optional_str(arguments, "encryptionKey"),
        )
        payload = {"success": result.error_class is None, **result.to_envelope()}
        is_error = result.error_class not in (None, ErrorClass.NOT_FOUND)
        return ToolResponse(payload, is_error=is_error)

    async def _verify_block(self, arguments: dict[str, Any]) -> ToolResponse:
        block_id = _require_str(arguments, "blockId")
        digest = normalize_digest(_require_str(arguments, "contentHash"))
        validate_digest(digest, "contentHash")
        digest = canonical_digest(digest)
        verified = await self._query(self.ledger.verify_block(block_id, digest))
        return ToolResponse(
            {
                "success": True,
                "verified": verified,
                "status": "VERIFIED" if verified else "FAILED",
                "blockId": block_id,
                "contentHash": digest,
            }
        )


def create_dispatcher(settings) -> ToolDispatcher:
    """Wire collaborators from startup settings."""
    ledger = open_ledger(settings)
    store = LocalContentStore(settings.content_dir)
    orchestrator = SubmissionOrchestrator(ledger, store, FileMaterializer(settings.allowed_root))
    return ToolDispatcher(ledger, orchestrator, AuditEngine(ledger, store))
