"""
auth/hashing.py -- One-way salted hashing for passwords and refresh tokens.

bcrypt via the bcrypt package directly (no passlib wrapper). Its cost factor
makes brute force expensive, which matters for low-entropy passwords.

The same Hasher stores refresh tokens, so a leaked users table does not
yield a usable token. Refresh tokens are JWTs, far longer than bcrypt's
72-byte input limit, and two tokens for the same user share their first 72
bytes (header plus the start of the claims). Every input is therefore reduced
with SHA-256 first, so bcrypt always sees the whole secret.
"""

from __future__ import annotations

import base64
import hashlib

import bcrypt

DEFAULT_ROUNDS = 12


def _prehash(secret: str) -> bytes:
    # base64 keeps the digest free of NUL bytes, which bcrypt would truncate at.
    return base64.b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


class Hasher:
    """bcrypt-SHA256 hasher shared by passwords and refresh tokens.

    Usage:
        hasher = Hasher(rounds=12)
        stored = hasher.hash("secret1")
        hasher.verify("secret1", stored)  # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds

    def hash(self, secret: str) -> str:
        """Return a salted bcrypt hash of secret. A fresh salt is drawn per call."""
        return bcrypt.hashpw(_prehash(secret), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, secret: str, hashed: str | None) -> bool:
        """Return True if secret matches hashed.

        bcrypt.checkpw compares in constant time. A missing or malformed hash
        returns False instead of raising.
        """
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(_prehash(secret), hashed.encode("utf-8"))
        except Exception:
            return False
