"""
Parent-hash resolution for new submissions.

Resolution order:
1. explicit parent supplied by the caller
2. the process-local ContinuityCache
3. the ledger's latest block hash (populates the cache)
4. the genesis digest
"""

from __future__ import annotations

import logging

from .errors import ExternalFailure, InvalidFormat, YamoError
from .ledger.base import LedgerClient
from .models import ParentResolution
from .validation import GENESIS_DIGEST, canonical_digest, is_genesis, validate_digest

logger = logging.getLogger(__name__)


class ContinuityCache:
    """
    Content hash of the block most recently accepted by this process.

    Empty at start, never persisted. Only record() digests the ledger has
    already accepted.
    """

    def __init__(self) -> None:
        self._latest: str | None = None

    @property
    def latest_content_hash(self) -> str | None:
        return self._latest

    def get(self) -> str | None:
        return self._latest

    def record(self, digest: str) -> None:
        self._latest = canonical_digest(digest)

    def clear(self) -> None:
        self._latest = None


class ContinuityResolver:
    def __init__(self, ledger: LedgerClient, cache: ContinuityCache):
        self.ledger = ledger
        self.cache = cache

    async def resolve(self, explicit_parent: str | None = None) -> ParentResolution:
        if explicit_parent:
            validate_digest(explicit_parent, "previousBlock")
            return ParentResolution(explicit_parent, "explicit")

        cached = self.cache.get()
        if cached is not None:
            logger.info("Using cached latest contentHash as parent: %s", cached)
            return ParentResolution(cached, "cache")

        # Concurrent resolutions may both land here; the query is idempotent.
        try:
            latest = await self.ledger.get_latest_block_hash()
        except YamoError:
            raise
        except Exception as e:
            raise ExternalFailure(f"Ledger query for latest block hash failed: {e}") from e

        if not is_genesis(latest):
            try:
                validate_digest(latest, "latestBlockHash")
            except InvalidFormat as e:
                raise ExternalFailure(f"Ledger returned a malformed digest: {latest!r}") from e
            digest = canonical_digest(latest)
            self.cache.record(digest)
            logger.info("Using ledger latest contentHash as parent: %s", digest)
            return ParentResolution(digest, "ledger")

        logger.info("No existing blocks found, using genesis")
        return ParentResolution(GENESIS_DIGEST, "genesis")
