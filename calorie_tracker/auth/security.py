# -*- coding: utf-8 -*-
"""Auth — password hashing (stdlib pbkdf2_hmac)."""

from __future__ import annotations

import hashlib
import hmac
import os

_PBKDF2_ALG = "sha512"
_PBKDF2_ITERATIONS = 10_000
_KEY_LENGTH = 64
_SALT_BYTES = 16


def _derive(password: str, salt_hex: str) -> str:
    dk = hashlib.pbkdf2_hmac(
        _PBKDF2_ALG,
        password.encode("utf-8"),
        salt_hex.encode("utf-8"),
        _PBKDF2_ITERATIONS,
        dklen=_KEY_LENGTH,
    )
    return dk.hex()


def hash_password(password: str) -> str:
    """Return ``"<salt hex>:<pbkdf2 hex>"``; the plaintext is never stored."""
    salt = os.urandom(_SALT_BYTES).hex()
    return f"{salt}:{_derive(password, salt)}"


def verify_password(password: str, stored: str) -> bool:
    try:
        salt, expected = stored.split(":", 1)
        if not salt or not expected:
            return False
        return hmac.compare_digest(_derive(password, salt), expected)
    except Exception:
        return False
