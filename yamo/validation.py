"""
Format validators for identifiers, digests and addresses.

All validators are pure: they return nothing (or a normalized value) and
raise InvalidFormat on malformed input.
"""

from __future__ import annotations

import hashlib
import re

from .errors import InvalidFormat

GENESIS_DIGEST = "0x" + "0" * 64

CONSENSUS_TYPES = ("agent_vote", "PoW", "PoS", "cli_manual", "mcp_generated")

_DIGEST_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")
_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

_MIN_KEY_LENGTH = 12


def validate_digest(value: object, field_name: str = "digest") -> None:
    if not isinstance(value, str) or not _DIGEST_RE.match(value):
        received = value[:20] if isinstance(value, str) else type(value).__name__
        raise InvalidFormat(
            f"{field_name} must be a valid bytes32 hash (0x + 64 hex chars). "
            f"Received: {received}...\n"
            'Do NOT include algorithm prefixes like "sha256:"',
            hint="Use the raw hex digest with a 0x prefix.",
        )


def validate_block_id(block_id: object) -> None:
    """Check the {origin}_{workflow} naming convention.

    Structural only; uniqueness is enforced by the ledger.
    """
    if not isinstance(block_id, str) or not block_id:
        raise InvalidFormat("blockId is required")
    segments = [s for s in block_id.split("_") if s]
    if len(segments) < 2:
        raise InvalidFormat(
            f"blockId must follow format {{origin}}_{{workflow}} (e.g., 'claude_chain'). Received: {block_id}",
            hint="Join origin and workflow with an underscore.",
        )


def validate_address(value: object, field_name: str = "address") -> None:
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise InvalidFormat(f"{field_name} must be a 20-byte hex address (0x + 40 hex chars)")


def validate_consensus_type(value: object) -> None:
    if value not in CONSENSUS_TYPES:
        raise InvalidFormat(f"consensusType must be one of: {', '.join(CONSENSUS_TYPES)}")


def validate_encryption_key(key: str) -> None:
    """Require 12+ characters drawn from at least three character classes."""
    classes = [
        any(c.islower() for c in key),
        any(c.isupper() for c in key),
        any(c.isdigit() for c in key),
        any(not c.isalnum() for c in key),
    ]
    if len(key) < _MIN_KEY_LENGTH or sum(classes) < 3:
        raise InvalidFormat(
            "encryptionKey is too weak",
            hint=f"Use {_MIN_KEY_LENGTH}+ characters mixing upper, lower, digits and symbols.",
        )


def canonical_digest(value: str) -> str:
    """Validated digests are compared and stored lowercase."""
    return value.lower()


def normalize_digest(value: str) -> str:
    """Accept a digest with or without its 0x prefix."""
    value = value.strip()
    if value[:2].lower() == "0x":
        return "0x" + value[2:]
    return "0x" + value


def compute_digest(text: str) -> str:
    return "0x" + hashlib.sha256(text.encode("utf-8")).hexdigest()


def is_genesis(digest: str | None) -> bool:
    return digest is None or digest.lower() == GENESIS_DIGEST
