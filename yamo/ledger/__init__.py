"""
Ledger clients.

- base: the LedgerClient protocol consumed by the submission core
- file_ledger: append-only JSON Lines ledger (file:// endpoints, local use)
- http: JSON-RPC gateway client (http:// and https:// endpoints)
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

from .base import LedgerClient
from .file_ledger import FileLedger
from .http import HttpLedgerClient, LedgerHttpConfig

if TYPE_CHECKING:
    from ..config import Settings


def open_ledger(settings: "Settings") -> LedgerClient:
    """Pick a ledger client from the endpoint's scheme."""
    endpoint = settings.ledger_endpoint
    parsed = urlparse(endpoint)
    if parsed.scheme in ("http", "https"):
        return HttpLedgerClient(
            LedgerHttpConfig(
                endpoint=endpoint,
                contract_address=settings.ledger_address,
                signing_key=settings.signing_key,
                timeout_s=settings.timeout_s,
            )
        )
    path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(endpoint)
    return FileLedger(path.expanduser(), settings.ledger_address, settings.signing_key)


__all__ = [
    "LedgerClient",
    "FileLedger",
    "HttpLedgerClient",
    "LedgerHttpConfig",
    "open_ledger",
]
