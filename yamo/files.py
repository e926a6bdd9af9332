"""
Sandboxed materialization of declared file inputs.

A FileInput's content is either literal text or a path. Existence decides
which: if nothing exists at that string it is literal. Anything that does
exist is security-checked before a single byte is read:

- the entry itself must not be a symbolic link
- its fully resolved location must lie inside the allowed root

Existence never grants unrestricted filesystem access. The sniffing is a
known sharp edge: literal content that happens to name an existing file
inside the root will be replaced by that file's text.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Iterable

from .errors import InvalidFormat, PathTraversal, SymlinkNotAllowed
from .models import FileInput, ResolvedFile

logger = logging.getLogger(__name__)


class FileMaterializer:
    """Resolve FileInputs to literal content without leaving `root`."""

    def __init__(self, root: Path | None = None):
        self.root = Path(os.path.abspath(root if root is not None else Path.cwd()))
        self._resolved_root = self.root.resolve()

    def _candidate(self, content: str) -> Path:
        path = Path(content)
        if not path.is_absolute():
            path = self.root / path
        # Collapse "." and ".." lexically; symlinks are left in place for the link check.
        return Path(os.path.normpath(path))

    def _check(self, name: str, candidate: Path, original: str) -> Path:
        if candidate.is_symlink():
            logger.warning("Rejected symlink for file %r: %s", name, original)
            raise SymlinkNotAllowed(
                f"Symbolic links are not allowed: {original}",
                hint="Pass the file's real path or its literal content.",
            )

        resolved = candidate.resolve()
        if resolved != self._resolved_root and self._resolved_root not in resolved.parents:
            logger.warning("Rejected path outside %s for file %r: %s", self._resolved_root, name, original)
            raise PathTraversal(
                f"File path outside allowed directory: {original}",
                hint=f"Only files under {self._resolved_root} can be bundled.",
            )

        if not resolved.is_file():
            raise InvalidFormat(f"File path is not a regular file: {original}")
        return resolved

    def _read(self, file: FileInput) -> ResolvedFile:
        content = file.content
        if not isinstance(content, str) or not content:
            return ResolvedFile(name=file.name, content=content)

        try:
            candidate = self._candidate(content)
            exists = os.path.lexists(candidate)
        except (OSError, ValueError):
            # Not representable as a path on this platform; literal by definition.
            exists = False
        if not exists:
            return ResolvedFile(name=file.name, content=content)

        resolved = self._check(file.name, candidate, content)
        logger.debug("Reading file %r from %s", file.name, resolved)
        with resolved.open("r", encoding="utf-8") as fh:
            text = fh.read()
        return ResolvedFile(name=file.name, content=text)

    async def materialize(self, file: FileInput) -> ResolvedFile:
        """Resolve a single FileInput."""
        if not isinstance(file.name, str) or not file.name.strip():
            raise InvalidFormat("file name must be a non-empty string")
        return await asyncio.to_thread(self._read, file)

    async def materialize_all(self, files: Iterable[FileInput]) -> list[ResolvedFile]:
        """
        Resolve every input, all-or-nothing.

        Inputs are independent so they are resolved concurrently; the first
        failure propagates and no partial result is returned.
        """
        return list(await asyncio.gather(*(self.materialize(f) for f in files)))
