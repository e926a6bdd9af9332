"""
Integrity audit of stored blocks.

Downloads a block's bundle, recomputes the digest of the block text the way
the submitter computed it (sha256 over the UTF-8 text), and compares it with
the on-chain hash. Four terminal outcomes:

- block absent:               verified=False, NotFound
- no content reference:       verified=None (cannot be computed)
- bundle downloaded:          verified = computed == on-chain
- download/decrypt failure:   verified=False, classified

Read-only: never touches the ledger's state or the continuity cache.
"""

from __future__ import annotations

import logging

from .content.base import ContentStore
from .errors import ErrorClass, ExternalFailure, YamoError
from .ledger.base import LedgerClient
from .models import AuditResult
from .validation import canonical_digest, compute_digest

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 500

_DOWNLOAD_CLASSES = (ErrorClass.MISSING_DECRYPTION_KEY, ErrorClass.DECRYPTION_FAILED)


class AuditEngine:
    def __init__(self, ledger: LedgerClient, store: ContentStore):
        self.ledger = ledger
        self.store = store

    async def audit(self, block_id: str, decryption_key: str | None = None) -> AuditResult:
        try:
            block = await self.ledger.get_block(block_id)
        except YamoError:
            raise
        except Exception as e:
            raise ExternalFailure(f"Ledger lookup failed: {e}") from e

        if block is None:
            return AuditResult(
                block_id=block_id,
                verified=False,
                error_class=ErrorClass.NOT_FOUND,
                error="Block not found on-chain",
                hint="Cannot audit non-existent block",
            )

        if not block.content_ref:
            return AuditResult(
                block_id=block_id,
                verified=None,
                on_chain_hash=block.content_hash,
                note="Block has no content reference - cannot audit actual content",
                block=block,
            )

        try:
            bundle = await self.store.download_bundle(block.content_ref, decryption_key or None)
        except Exception as e:
            error_class = getattr(e, "error_class", ErrorClass.UNKNOWN)
            if error_class not in _DOWNLOAD_CLASSES:
                error_class = ErrorClass.UNKNOWN
            logger.warning("Audit of %s could not read %s: %s", block_id, block.content_ref, e)
            return AuditResult(
                block_id=block_id,
                verified=False,
                on_chain_hash=block.content_hash,
                error_class=error_class,
                error=str(e),
                hint=getattr(e, "hint", None),
                block=block,
            )

        computed = compute_digest(bundle.block)
        verified = computed == canonical_digest(block.content_hash)
        if not verified:
            logger.warning("Audit mismatch for %s: on-chain %s, computed %s", block_id, block.content_hash, computed)

        preview = bundle.block[:PREVIEW_CHARS] + ("..." if len(bundle.block) > PREVIEW_CHARS else "")
        return AuditResult(
            block_id=block_id,
            verified=verified,
            on_chain_hash=block.content_hash,
            computed_hash=computed,
            block=block,
            details={
                "contentPreview": preview,
                "contentLength": len(bundle.block),
                "artifactFiles": sorted(bundle.files),
                "wasEncrypted": bool(decryption_key),
            },
        )
