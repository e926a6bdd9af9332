"""
Content bundle storage.

- base: the ContentStore protocol and the downloaded Bundle
- store: local content-addressed store (optionally encrypted bundles)
- crypto: passphrase encryption used by the store
"""

from .base import Bundle, ContentStore
from .store import LocalContentStore

__all__ = [
    "Bundle",
    "ContentStore",
    "LocalContentStore",
]
