"""Password hashing helpers."""

from __future__ import annotations

import secrets

import bcrypt

from .config import BCRYPT_ROUNDS

# bcrypt only looks at the first 72 bytes of input.
MAX_PASSWORD_BYTES = 72


def hash_password(plain_password: str) -> str:
    """Hash a plaintext password using bcrypt."""

    encoded = plain_password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError("Password is too long")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Validate a plaintext password against a stored hash."""

    if not hashed_password:
        return False
    encoded = plain_password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed_password.encode("utf-8"))
    except ValueError:
        return False


def unusable_password_hash() -> str:
    """Hash of a random secret nobody knows, for accounts created by linking."""

    return hash_password(secrets.token_hex(12))


__all__ = [
    "MAX_PASSWORD_BYTES",
    "hash_password",
    "unusable_password_hash",
    "verify_password",
]
