# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Salted PBKDF2 password hashes.

Stored format: ``pbkdf2_sha256$<iterations>$<salt>$<base64 digest>``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 260_000


def _digest(password: str, salt: str, iterations: int) -> str:
    raw = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return base64.b64encode(raw).decode("ascii")


def hash_password(password: str, iterations: int = ITERATIONS) -> str:
    """Return a new salted hash of `password`."""
    salt = secrets.token_hex(16)
    return f"{ALGORITHM}${iterations}${salt}${_digest(password, salt, iterations)}"


def is_password_hash(value: str) -> bool:
    """True if `value` already looks like a hash produced by hash_password()."""
    parts = value.split("$")
    return len(parts) == 4 and parts[0] == ALGORITHM and parts[1].isdigit()


def verify_password(password: str, hashed: str | None) -> bool:
    """Check `password` against a stored hash (False for a missing or malformed hash)."""
    if not hashed or not is_password_hash(hashed):
        return False
    _, iterations, salt, expected = hashed.split("$")
    return hmac.compare_digest(_digest(password, salt, int(iterations)), expected)


__all__ = ["hash_password", "is_password_hash", "verify_password"]
