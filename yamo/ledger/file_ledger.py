"""
Append-only local block ledger.

Stores accepted blocks in a JSON Lines file, one block per line.
Key property: append-only, never rewritten. A line is written only after
all checks pass, so an accepted block is durable once submit returns.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import threading
import time
from pathlib import Path
from typing import Any, Iterator

from ..errors import ExternalFailure
from ..models import BlockRecord, SubmissionReceipt
from .signing import canonical_json, derive_agent_address, sign_payload


class FileLedger:
    """Append-only ledger for block records.

    Storage format: JSON Lines (.jsonl) - one accepted block per line:
        {"block": {...}, "block_number": N, "signature": "...", "transaction_hash": "0x..."}
    """

    def __init__(self, ledger_path: Path, contract_address: str, signing_key: str):
        """Initialize ledger at a path.

        Args:
            ledger_path: Path to the .jsonl file (created on first submit)
            contract_address: Address reported back to callers
            signing_key: Credential used to derive the submitter address and sign entries
        """
        self.ledger_path = Path(ledger_path)
        self._contract_address = contract_address
        self._signing_key = signing_key
        self.agent_address = derive_agent_address(signing_key)
        self._lock = threading.Lock()

    @property
    def contract_address(self) -> str:
        return self._contract_address

    def _iter_entries(self) -> Iterator[dict[str, Any]]:
        if not self.ledger_path.exists():
            return
        with self.ledger_path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    yield json.loads(line)

    def _find(self, block_id: str) -> BlockRecord | None:
        for entry in self._iter_entries():
            if entry["block"]["block_id"] == block_id:
                return BlockRecord.from_dict(entry["block"])
        return None

    def _last(self) -> BlockRecord | None:
        last = None
        for entry in self._iter_entries():
            last = entry
        return BlockRecord.from_dict(last["block"]) if last else None

    def _append(self, record: BlockRecord) -> SubmissionReceipt:
        with self._lock:
            count = 0
            for entry in self._iter_entries():
                count += 1
                if entry["block"]["block_id"] == record.block_id:
                    raise ExternalFailure(
                        f"Block already exists on ledger: {record.block_id}",
                        hint="Block ids are unique; choose a new {origin}_{workflow} id.",
                    )

            block = record.to_dict()
            entry = {
                "block": block,
                "block_number": count + 1,
                "signature": sign_payload(self._signing_key, block),
            }
            entry["transaction_hash"] = "0x" + hashlib.sha256(canonical_json(entry)).hexdigest()

            self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
            with self.ledger_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, separators=(",", ":")) + "\n")
                f.flush()

        return SubmissionReceipt(
            transaction_hash=entry["transaction_hash"],
            block_number=entry["block_number"],
            block=record,
        )

    async def submit_block(
        self,
        block_id: str,
        parent_digest: str,
        content_hash: str,
        consensus_type: str,
        ledger_ref: str,
        content_ref: str | None = None,
    ) -> SubmissionReceipt:
        record = BlockRecord(
            block_id=block_id,
            previous_hash=parent_digest.lower(),
            agent_address=self.agent_address,
            content_hash=content_hash.lower(),
            timestamp=int(time.time()),
            consensus_type=consensus_type,
            ledger_ref=ledger_ref,
            content_ref=content_ref,
        )
        return await asyncio.to_thread(self._append, record)

    async def get_block(self, block_id: str) -> BlockRecord | None:
        return await asyncio.to_thread(self._find, block_id)

    async def get_latest_block(self) -> BlockRecord | None:
        return await asyncio.to_thread(self._last)

    async def get_latest_block_hash(self) -> str | None:
        latest = await self.get_latest_block()
        return latest.content_hash if latest else None

    async def verify_block(self, block_id: str, digest: str) -> bool:
        record = await self.get_block(block_id)
        return record is not None and record.content_hash == digest.lower()
