"""
Passphrase encryption for content bundles.

AES-256-GCM with a PBKDF2-HMAC-SHA256 derived key. Salt and nonce are
random per bundle and stored alongside the ciphertext.
"""

from __future__ import annotations

import base64
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..errors import DecryptionFailed

SCHEME = "aes-256-gcm+pbkdf2-sha256"
ITERATIONS = 200_000


def _derive_key(passphrase: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=iterations)
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt(plaintext: bytes, passphrase: str) -> dict[str, Any]:
    salt = os.urandom(16)
    nonce = os.urandom(12)
    key = _derive_key(passphrase, salt, ITERATIONS)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
    return {
        "scheme": SCHEME,
        "iterations": ITERATIONS,
        "salt": base64.b64encode(salt).decode("ascii"),
        "nonce": base64.b64encode(nonce).decode("ascii"),
        "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
    }


def decrypt(envelope: dict[str, Any], passphrase: str) -> bytes:
    if envelope.get("scheme") != SCHEME:
        raise DecryptionFailed(f"Decryption failed: unsupported scheme {envelope.get('scheme')!r}")
    try:
        salt = base64.b64decode(envelope["salt"])
        nonce = base64.b64decode(envelope["nonce"])
        ciphertext = base64.b64decode(envelope["ciphertext"])
        key = _derive_key(passphrase, salt, int(envelope["iterations"]))
        return AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise DecryptionFailed(
            "Decryption failed: wrong key or corrupted bundle",
            hint="The provided encryption key may be incorrect.",
        ) from e
    except (KeyError, ValueError) as e:
        raise DecryptionFailed(f"Decryption failed: malformed envelope ({e})") from e
