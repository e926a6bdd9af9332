"""
Block submission orchestration.

validate -> materialize files -> resolve parent -> upload bundle ->
submit to ledger -> record in continuity cache.

Nothing external is touched until every local check has passed, and the
continuity cache only moves after the ledger has accepted the block. There
is no retry here; each attempt surfaces one classified error.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .content.base import ContentStore
from .continuity import ContinuityCache, ContinuityResolver
from .errors import ExternalFailure, YamoError
from .files import FileMaterializer
from .ledger.base import LedgerClient
from .models import FileInput, SubmissionResult
from .validation import (
    canonical_digest,
    validate_block_id,
    validate_consensus_type,
    validate_digest,
    validate_encryption_key,
)

logger = logging.getLogger(__name__)


class SubmissionOrchestrator:
    """Owns the continuity cache for one process."""

    def __init__(
        self,
        ledger: LedgerClient,
        store: ContentStore,
        materializer: FileMaterializer | None = None,
        cache: ContinuityCache | None = None,
    ):
        self.ledger = ledger
        self.store = store
        self.materializer = materializer or FileMaterializer()
        self.cache = cache if cache is not None else ContinuityCache()
        self.resolver = ContinuityResolver(ledger, self.cache)

    async def submit(
        self,
        block_id: str,
        content_hash: str,
        consensus_type: str,
        ledger_ref: str,
        *,
        previous_block: str | None = None,
        content: str | None = None,
        files: Sequence[FileInput] = (),
        encryption_key: str | None = None,
    ) -> SubmissionResult:
        validate_block_id(block_id)
        validate_digest(content_hash, "contentHash")
        if previous_block:
            validate_digest(previous_block, "previousBlock")
        validate_consensus_type(consensus_type)
        if encryption_key:
            validate_encryption_key(encryption_key)
        content_hash = canonical_digest(content_hash)

        resolved_files = await self.materializer.materialize_all(files)

        parent = await self.resolver.resolve(previous_block)

        content_ref = None
        if content:
            try:
                content_ref = await self.store.upload(content, resolved_files, encryption_key or None)
            except YamoError:
                raise
            except Exception as e:
                raise ExternalFailure(f"Content upload failed: {e}") from e
            logger.info("Uploaded bundle for %s: %s", block_id, content_ref)
        elif resolved_files:
            logger.warning("Ignoring %d file(s) for %s: no content to bundle them with", len(resolved_files), block_id)

        try:
            receipt = await self.ledger.submit_block(
                block_id,
                parent.digest,
                content_hash,
                consensus_type,
                ledger_ref,
                content_ref,
            )
        except YamoError:
            raise
        except Exception as e:
            raise ExternalFailure(f"Ledger submission failed: {e}") from e

        self.cache.record(content_hash)
        logger.info(
            "Block %s accepted (tx %s), parent %s from %s",
            block_id,
            receipt.transaction_hash,
            parent.digest,
            parent.source,
        )

        return SubmissionResult(
            receipt=receipt,
            parent=parent,
            content_ref=content_ref,
            contract_address=self.ledger.contract_address,
        )
