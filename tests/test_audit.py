"""
Tests for the integrity audit.

Audit recomputes sha256 over the stored block text and compares it with the
on-chain contentHash. It never writes to the ledger or the continuity cache.
"""

from __future__ import annotations

import pytest

from yamo.audit import PREVIEW_CHARS, AuditEngine
from yamo.errors import ErrorClass
from yamo.models import FileInput
from yamo.validation import compute_digest

from .conftest import STRONG_KEY, StubLedger


@pytest.fixture
def engine(file_ledger, store) -> AuditEngine:
    return AuditEngine(file_ledger, store)


@pytest.mark.asyncio
async def test_round_trip_audit_verifies(orchestrator, engine):
    content = "agent: claude\nintent: audit me"
    await orchestrator.submit(
        "claude_audit", compute_digest(content), "agent_vote", "ipfs",
        content=content, files=[FileInput("notes.txt", "n")],
    )

    result = await engine.audit("claude_audit")

    assert result.verified is True
    assert result.computed_hash == compute_digest(content)
    assert result.on_chain_hash == compute_digest(content)
    assert result.error_class is None
    assert result.details["contentPreview"] == content
    assert result.details["contentLength"] == len(content)
    assert result.details["artifactFiles"] == ["notes.txt"]
    assert result.details["wasEncrypted"] is False


@pytest.mark.asyncio
async def test_mismatched_hash_is_not_verified(orchestrator, engine):
    await orchestrator.submit(
        "claude_tampered", compute_digest("what was claimed"), "agent_vote", "ipfs", content="what was stored"
    )

    result = await engine.audit("claude_tampered")

    assert result.verified is False
    assert result.error_class is None
    assert result.computed_hash == compute_digest("what was stored")
    assert result.on_chain_hash == compute_digest("what was claimed")


@pytest.mark.asyncio
async def test_block_without_content_ref_cannot_be_audited(orchestrator, engine):
    await orchestrator.submit("claude_bare", compute_digest("bare"), "agent_vote", "ipfs")

    result = await engine.audit("claude_bare")

    assert result.verified is None
    assert "no content reference" in result.note
    assert result.to_envelope()["verified"] is None


@pytest.mark.asyncio
async def test_unknown_block_is_not_found(engine):
    result = await engine.audit("claude_missing")

    assert result.verified is False
    assert result.error_class is ErrorClass.NOT_FOUND
    assert result.error == "Block not found on-chain"


@pytest.mark.asyncio
async def test_encrypted_bundle_needs_key(orchestrator, engine):
    await orchestrator.submit(
        "claude_secret", compute_digest("secret"), "agent_vote", "ipfs", content="secret", encryption_key=STRONG_KEY
    )

    result = await engine.audit("claude_secret")

    assert result.verified is False
    assert result.error_class is ErrorClass.MISSING_DECRYPTION_KEY
    assert "encryptionKey" in result.hint


@pytest.mark.asyncio
async def test_encrypted_bundle_with_wrong_key(orchestrator, engine):
    await orchestrator.submit(
        "claude_secret", compute_digest("secret"), "agent_vote", "ipfs", content="secret", encryption_key=STRONG_KEY
    )

    result = await engine.audit("claude_secret", "Wrong-Horse-99")

    assert result.verified is False
    assert result.error_class is ErrorClass.DECRYPTION_FAILED
    assert result.hint == "The provided encryption key may be incorrect."


@pytest.mark.asyncio
async def test_encrypted_bundle_with_right_key_verifies(orchestrator, engine):
    await orchestrator.submit(
        "claude_secret", compute_digest("secret"), "agent_vote", "ipfs", content="secret", encryption_key=STRONG_KEY
    )

    result = await engine.audit("claude_secret", STRONG_KEY)

    assert result.verified is True
    assert result.details["wasEncrypted"] is True


@pytest.mark.asyncio
async def test_missing_bundle_is_unknown_failure(store):
    ledger = StubLedger()
    await ledger.submit_block("claude_gone", "0x" + "0" * 64, compute_digest("x"), "agent_vote", "ipfs", "ab" * 32)

    result = await AuditEngine(ledger, store).audit("claude_gone")

    assert result.verified is False
    assert result.error_class is ErrorClass.UNKNOWN


@pytest.mark.asyncio
async def test_long_content_preview_is_truncated(orchestrator, engine):
    content = "x" * (PREVIEW_CHARS + 10)
    await orchestrator.submit("claude_long", compute_digest(content), "agent_vote", "ipfs", content=content)

    result = await engine.audit("claude_long")

    assert result.details["contentPreview"] == "x" * PREVIEW_CHARS + "..."
    assert result.details["contentLength"] == PREVIEW_CHARS + 10


@pytest.mark.asyncio
async def test_audit_does_not_touch_ledger_or_cache(orchestrator, engine, file_ledger):
    await orchestrator.submit("claude_one", compute_digest("one"), "agent_vote", "ipfs", content="one")
    cached = orchestrator.cache.get()

    await engine.audit("claude_one")
    await engine.audit("claude_missing")

    assert len(file_ledger.ledger_path.read_text(encoding="utf-8").splitlines()) == 1
    assert orchestrator.cache.get() == cached
