"""Content Store capability interface."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence

from ..models import ResolvedFile


@dataclass(frozen=True)
class Bundle:
    """Downloaded bundle: the block text plus its artifact files."""

    block: str
    files: dict[str, str] = field(default_factory=dict)


class ContentStore(Protocol):
    async def upload(
        self,
        content: str,
        files: Sequence[ResolvedFile] = (),
        encryption_key: str | None = None,
    ) -> str:
        """Store a bundle and return its content reference."""
        ...

    async def download_bundle(self, content_ref: str, decryption_key: str | None = None) -> Bundle:
        """
        Fetch a bundle.

        Raises MissingDecryptionKey when the bundle is encrypted and no key
        was given, DecryptionFailed when the key is rejected, NotFound when
        the reference is unknown.
        """
        ...
