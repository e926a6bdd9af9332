"""Ledger Client capability interface."""

from __future__ import annotations

from typing import Protocol

from ..models import BlockRecord, SubmissionReceipt


class LedgerClient(Protocol):
    """
    Records immutable block submissions and answers queries about them.

    submit_block returns only once the ledger has durably accepted the
    block; a rejection or timeout raises.
    """

    @property
    def contract_address(self) -> str: ...

    async def submit_block(
        self,
        block_id: str,
        parent_digest: str,
        content_hash: str,
        consensus_type: str,
        ledger_ref: str,
        content_ref: str | None = None,
    ) -> SubmissionReceipt: ...

    async def get_block(self, block_id: str) -> BlockRecord | None: ...

    async def get_latest_block(self) -> BlockRecord | None: ...

    async def get_latest_block_hash(self) -> str | None: ...

    async def verify_block(self, block_id: str, digest: str) -> bool: ...
