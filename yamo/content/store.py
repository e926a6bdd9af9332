"""
Content-addressed storage (CAS) for block bundles.

Bundles are stored by the sha256 of their canonical JSON document, enabling
deduplication and integrity verification. The store is separate from the
ledger - the ledger references a bundle only by its content_ref.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from pathlib import Path
from typing import Any, Sequence

from ..errors import InvalidFormat, MissingDecryptionKey, NotFound
from ..models import ResolvedFile
from ..validation import validate_encryption_key
from . import crypto
from .base import Bundle

_BUNDLE = "bundle"
_ENCRYPTED = "encrypted_bundle"


class LocalContentStore:
    """
    Content-addressed storage for block bundles.

    Documents are stored in a two-level directory structure using the
    first 2 characters of the hash as the prefix:

        .yamo/content/ab/ab1234...json

    This prevents directory bloat while maintaining fast lookups.
    """

    def __init__(self, content_dir: Path):
        """
        Initialize content store.

        Args:
            content_dir: Root directory for stored bundles
        """
        self.content_dir = Path(content_dir)

    def _content_path(self, content_ref: str) -> Path:
        prefix = content_ref[:2]
        return self.content_dir / prefix / f"{content_ref}.json"

    @staticmethod
    def compute_hash(document: dict[str, Any]) -> str:
        """Hex sha256 of the canonical JSON serialization."""
        canonical = json.dumps(document, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def store(self, document: dict[str, Any]) -> str:
        """
        Store a document and return its content_ref.

        If the document already exists, this is a no-op (idempotent).
        """
        content_ref = self.compute_hash(document)
        content_path = self._content_path(content_ref)
        if content_path.exists():
            return content_ref

        content_path.parent.mkdir(parents=True, exist_ok=True)

        # Write atomically (write to temp, then rename)
        temp_path = content_path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
        temp_path.replace(content_path)

        return content_ref

    def get(self, content_ref: str) -> dict[str, Any] | None:
        """Retrieve a stored document, or None if not found."""
        if not content_ref or any(c not in "0123456789abcdef" for c in content_ref):
            return None
        content_path = self._content_path(content_ref)
        if not content_path.exists():
            return None
        return json.loads(content_path.read_text(encoding="utf-8"))

    def _build(self, content: str, files: Sequence[ResolvedFile], encryption_key: str | None) -> str:
        bundle = {"_type": _BUNDLE, "block": content, "files": {f.name: f.content for f in files}}
        if encryption_key is None:
            return self.store(bundle)

        plaintext = json.dumps(bundle, sort_keys=True).encode("utf-8")
        return self.store({"_type": _ENCRYPTED, **crypto.encrypt(plaintext, encryption_key)})

    def _open(self, content_ref: str, decryption_key: str | None) -> Bundle:
        document = self.get(content_ref)
        if document is None:
            raise NotFound(f"Content not found in store: {content_ref}")

        if document.get("_type") == _ENCRYPTED:
            if not decryption_key:
                raise MissingDecryptionKey(
                    "Bundle is encrypted and no decryption key was provided",
                    hint="This bundle is encrypted. Provide encryptionKey to audit.",
                )
            document = json.loads(crypto.decrypt(document, decryption_key).decode("utf-8"))

        if document.get("_type") != _BUNDLE:
            raise InvalidFormat(f"Stored document is not a bundle: {content_ref}")
        return Bundle(block=document["block"], files=dict(document.get("files") or {}))

    async def upload(
        self,
        content: str,
        files: Sequence[ResolvedFile] = (),
        encryption_key: str | None = None,
    ) -> str:
        if encryption_key is not None:
            validate_encryption_key(encryption_key)
        return await asyncio.to_thread(self._build, content, list(files), encryption_key)

    async def download_bundle(self, content_ref: str, decryption_key: str | None = None) -> Bundle:
        return await asyncio.to_thread(self._open, content_ref, decryption_key)

