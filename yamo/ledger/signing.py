"""
Signing-credential helpers.

The credential itself never leaves this module: callers get a derived
submitter address and HMAC signatures.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any


def derive_agent_address(signing_key: str) -> str:
    """Stable 20-byte submitter address for a credential."""
    digest = hashlib.sha256(signing_key.encode("utf-8")).hexdigest()
    return "0x" + digest[-40:]


def canonical_json(payload: Any) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def sign_payload(signing_key: str, payload: Any) -> str:
    return hmac.new(signing_key.encode("utf-8"), canonical_json(payload), hashlib.sha256).hexdigest()
