"""Password hashing and opaque token helpers."""
from __future__ import annotations

import secrets

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_hasher = PasswordHasher()

# 32 random bytes, URL-safe base64 encoded (43 characters).
SESSION_TOKEN_BYTES = 32


def new_session_token() -> str:
    """Return a fresh, unguessable session token."""
    return secrets.token_urlsafe(SESSION_TOKEN_BYTES)


def hash_password(password: str) -> str:
    """Return an Argon2id hash of ``password``."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a stored hash.

    Args:
        password: Plain-text candidate supplied by the client.
        password_hash: Stored hash; an empty string marks a federated-only
            account, which can never authenticate with a password.

    Returns:
        True if the password matches; False otherwise.
    """
    if not password_hash:
        return False
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def new_oauth_state() -> str:
    """Return a single-use OAuth state nonce."""
    return secrets.token_urlsafe(24)
