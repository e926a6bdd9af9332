"""Records exchanged between the submission core and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from .errors import ErrorClass


def _iso(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class BlockRecord:
    """A block as accepted by the ledger. Read-only from this side."""

    block_id: str
    previous_hash: str
    agent_address: str
    content_hash: str
    timestamp: int
    consensus_type: str
    ledger_ref: str
    content_ref: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "block_id": self.block_id,
            "previous_hash": self.previous_hash,
            "agent_address": self.agent_address,
            "content_hash": self.content_hash,
            "timestamp": self.timestamp,
            "consensus_type": self.consensus_type,
            "ledger_ref": self.ledger_ref,
            "content_ref": self.content_ref,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BlockRecord":
        return cls(
            block_id=data["block_id"],
            previous_hash=data["previous_hash"],
            agent_address=data["agent_address"],
            content_hash=data["content_hash"],
            timestamp=int(data["timestamp"]),
            consensus_type=data["consensus_type"],
            ledger_ref=data["ledger_ref"],
            content_ref=data.get("content_ref"),
        )

    def to_envelope(self) -> dict[str, Any]:
        """camelCase rendering used by the tool surface."""
        return {
            "blockId": self.block_id,
            "previousBlock": self.previous_hash,
            "agentAddress": self.agent_address,
            "contentHash": self.content_hash,
            "timestamp": self.timestamp,
            "timestampISO": _iso(self.timestamp),
            "consensusType": self.consensus_type,
            "ledger": self.ledger_ref,
            "contentRef": self.content_ref,
        }


@dataclass(frozen=True)
class FileInput:
    """A declared file whose content is either literal text or a path."""

    name: str
    content: Any


@dataclass(frozen=True)
class ResolvedFile:
    name: str
    content: str


@dataclass(frozen=True)
class SubmissionReceipt:
    """Durable acceptance returned by the ledger."""

    transaction_hash: str
    block_number: int
    block: BlockRecord


ParentSource = Literal["explicit", "cache", "ledger", "genesis"]


@dataclass(frozen=True)
class ParentResolution:
    digest: str
    source: ParentSource


@dataclass(frozen=True)
class SubmissionResult:
    receipt: SubmissionReceipt
    parent: ParentResolution
    content_ref: str | None
    contract_address: str

    def to_envelope(self) -> dict[str, Any]:
        return {
            "blockId": self.receipt.block.block_id,
            "transactionHash": self.receipt.transaction_hash,
            "blockNumber": self.receipt.block_number,
            "contentRef": self.content_ref,
            "previousBlock": self.parent.digest,
            "previousBlockSource": self.parent.source,
            "contractAddress": self.contract_address,
            "timestamp": _iso(self.receipt.block.timestamp),
        }


@dataclass
class AuditResult:
    """
    Outcome of an integrity audit.

    verified is tri-state: True/False, or None when the block carries no
    content reference and nothing can be recomputed.
    """

    block_id: str
    verified: bool | None
    on_chain_hash: str | None = None
    computed_hash: str | None = None
    error_class: ErrorClass | None = None
    error: str | None = None
    hint: str | None = None
    note: str | None = None
    block: BlockRecord | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_envelope(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "verified": self.verified,
            "blockId": self.block_id,
            "onChainHash": self.on_chain_hash,
        }
        if self.computed_hash is not None:
            result["computedHash"] = self.computed_hash
        if self.block is not None:
            result["contentRef"] = self.block.content_ref
            result["agentAddress"] = self.block.agent_address
            result["timestamp"] = self.block.timestamp
            result["timestampISO"] = _iso(self.block.timestamp)
            result["consensusType"] = self.block.consensus_type
            result["ledger"] = self.block.ledger_ref
        if self.error_class is not None:
            result["errorClass"] = self.error_class.value
        if self.error is not None:
            result["error"] = self.error
        if self.hint is not None:
            result["hint"] = self.hint
        if self.note is not None:
            result["note"] = self.note
        result.update(self.details)
        return result
