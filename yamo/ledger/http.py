"""Ledger JSON-RPC HTTP client (small, dependency-free).

Speaks JSON-RPC 2.0 over HTTP POST to a ledger gateway:
  yamo_submitBlock, yamo_getBlock, yamo_getLatestBlock,
  yamo_getLatestBlockHash, yamo_verifyBlock

Request bodies are signed with the configured credential (HMAC-SHA256,
X-Yamo-Signature header); the credential itself is never sent.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import time
from dataclasses import dataclass, field
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..errors import ExternalFailure
from ..models import BlockRecord, SubmissionReceipt
from .signing import derive_agent_address, sign_payload


@dataclass(frozen=True)
class LedgerHttpConfig:
    endpoint: str
    contract_address: str
    signing_key: str = field(repr=False)
    timeout_s: float = 30.0


def _record_from_rpc(data: dict[str, Any]) -> BlockRecord:
    return BlockRecord(
        block_id=data["blockId"],
        previous_hash=data["previousBlock"],
        agent_address=data["agentAddress"],
        content_hash=data["contentHash"],
        timestamp=int(data["timestamp"]),
        consensus_type=data["consensusType"],
        ledger_ref=data["ledger"],
        content_ref=data.get("contentRef") or None,
    )


class HttpLedgerClient:
    """Minimal JSON-RPC ledger client."""

    def __init__(self, cfg: LedgerHttpConfig) -> None:
        self._cfg = cfg
        self._ids = itertools.count(1)
        self.agent_address = derive_agent_address(cfg.signing_key)

    @property
    def contract_address(self) -> str:
        return self._cfg.contract_address

    def call(self, method: str, params: dict[str, Any]) -> Any:
        """Perform one JSON-RPC call and return its decoded result."""
        message = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": {"contract": self._cfg.contract_address, "from": self.agent_address, **params},
        }
        body = json.dumps(message).encode("utf-8")
        req = Request(
            self._cfg.endpoint,
            data=body,
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "X-Yamo-Signature": sign_payload(self._cfg.signing_key, message["params"]),
            },
        )
        try:
            with urlopen(req, timeout=self._cfg.timeout_s) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except HTTPError as e:
            raise ExternalFailure(f"Ledger HTTP error {e.code}: {e.reason}") from e
        except URLError as e:
            raise ExternalFailure(f"Ledger connection error: {e.reason}") from e
        except TimeoutError as e:
            raise ExternalFailure(f"Ledger call timed out after {self._cfg.timeout_s}s: {method}") from e

        error = payload.get("error")
        if error:
            code = error.get("code", "LedgerError")
            msg = error.get("message", "Unknown ledger error")
            raise ExternalFailure(f"{code}: {msg}")

        return payload.get("result")

    async def _call(self, method: str, params: dict[str, Any]) -> Any:
        return await asyncio.to_thread(self.call, method, params)

    async def submit_block(
        self,
        block_id: str,
        parent_digest: str,
        content_hash: str,
        consensus_type: str,
        ledger_ref: str,
        content_ref: str | None = None,
    ) -> SubmissionReceipt:
        result = await self._call(
            "yamo_submitBlock",
            {
                "blockId": block_id,
                "previousBlock": parent_digest,
                "contentHash": content_hash,
                "consensusType": consensus_type,
                "ledger": ledger_ref,
                "contentRef": content_ref or "",
            },
        )
        if not isinstance(result, dict) or "transactionHash" not in result:
            raise ExternalFailure("Ledger accepted submission without a transaction receipt")
        if result.get("block"):
            record = _record_from_rpc(result["block"])
        else:
            # Accepted without an echoed record; rebuild it from what was sent.
            record = BlockRecord(
                block_id=block_id,
                previous_hash=parent_digest,
                agent_address=self.agent_address,
                content_hash=content_hash,
                timestamp=int(result.get("timestamp") or time.time()),
                consensus_type=consensus_type,
                ledger_ref=ledger_ref,
                content_ref=content_ref,
            )
        return SubmissionReceipt(
            transaction_hash=result["transactionHash"],
            block_number=int(result.get("blockNumber", 0)),
            block=record,
        )

    async def get_block(self, block_id: str) -> BlockRecord | None:
        result = await self._call("yamo_getBlock", {"blockId": block_id})
        return _record_from_rpc(result) if result else None

    async def get_latest_block(self) -> BlockRecord | None:
        result = await self._call("yamo_getLatestBlock", {})
        return _record_from_rpc(result) if result else None

    async def get_latest_block_hash(self) -> str | None:
        result = await self._call("yamo_getLatestBlockHash", {})
        return result or None

    async def verify_block(self, block_id: str, digest: str) -> bool:
        result = await self._call("yamo_verifyBlock", {"blockId": block_id, "contentHash": digest})
        return bool(result)
