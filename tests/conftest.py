"""Pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from yamo.audit import AuditEngine
from yamo.content.store import LocalContentStore
from yamo.continuity import ContinuityCache
from yamo.files import FileMaterializer
from yamo.ledger.file_ledger import FileLedger
from yamo.models import BlockRecord, SubmissionReceipt
from yamo.submission import SubmissionOrchestrator
from yamo.tools import ToolDispatcher

CONTRACT = "0x" + "ab" * 20
SIGNING_KEY = "test-signing-key"
STRONG_KEY = "Correct-Horse-42"


class StubLedger:
    """In-memory ledger that counts queries and can be told to fail."""

    def __init__(self, latest_hash: str | None = None):
        self.latest_hash = latest_hash
        self.blocks: dict[str, BlockRecord] = {}
        self.latest_queries = 0
        self.submissions: list[dict] = []
        self.fail_submit: Exception | None = None

    @property
    def contract_address(self) -> str:
        return CONTRACT

    async def submit_block(self, block_id, parent_digest, content_hash, consensus_type, ledger_ref, content_ref=None):
        self.submissions.append(
            {"block_id": block_id, "parent": parent_digest, "content_hash": content_hash, "content_ref": content_ref}
        )
        if self.fail_submit is not None:
            raise self.fail_submit
        record = BlockRecord(
            block_id=block_id,
            previous_hash=parent_digest,
            agent_address="0x" + "cd" * 20,
            content_hash=content_hash,
            timestamp=1_700_000_000,
            consensus_type=consensus_type,
            ledger_ref=ledger_ref,
            content_ref=content_ref,
        )
        self.blocks[block_id] = record
        self.latest_hash = content_hash
        return SubmissionReceipt(transaction_hash="0xfeed", block_number=len(self.blocks), block=record)

    async def get_block(self, block_id):
        return self.blocks.get(block_id)

    async def get_latest_block(self):
        return list(self.blocks.values())[-1] if self.blocks else None

    async def get_latest_block_hash(self):
        self.latest_queries += 1
        return self.latest_hash

    async def verify_block(self, block_id, digest):
        block = self.blocks.get(block_id)
        return block is not None and block.content_hash == digest


@pytest.fixture
def sandbox(tmp_path: Path) -> Path:
    """Allowed root for file materialization."""
    root = tmp_path / "sandbox"
    root.mkdir()
    return root


@pytest.fixture
def materializer(sandbox: Path) -> FileMaterializer:
    return FileMaterializer(sandbox)


@pytest.fixture
def file_ledger(tmp_path: Path) -> FileLedger:
    return FileLedger(tmp_path / "ledger" / "blocks.jsonl", CONTRACT, SIGNING_KEY)


@pytest.fixture
def store(tmp_path: Path) -> LocalContentStore:
    return LocalContentStore(tmp_path / "content")


@pytest.fixture
def stub_ledger() -> StubLedger:
    return StubLedger()


@pytest.fixture
def orchestrator(file_ledger: FileLedger, store: LocalContentStore, materializer: FileMaterializer) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(file_ledger, store, materializer, ContinuityCache())


@pytest.fixture
def dispatcher(file_ledger: FileLedger, store: LocalContentStore, orchestrator: SubmissionOrchestrator) -> ToolDispatcher:
    return ToolDispatcher(file_ledger, orchestrator, AuditEngine(file_ledger, store))
