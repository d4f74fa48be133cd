"""Exception taxonomy shared by the session, identity and reaction services.

A missing session or user is never an exception: lookups return ``None``.
"""

from __future__ import annotations


class ForumError(RuntimeError):
    """Base exception for forum service failures."""


class StorageUnavailable(ForumError):
    """Raised when the backing store could not be reached or timed out.

    Always wraps the original driver error as ``__cause__``.
    """


class ConflictRetryExhausted(ForumError):
    """Raised when a bounded conflict-resolution loop could not settle.

    Used by the reaction toggle when concurrent writers keep invalidating the
    observed state, and by username synthesis when every candidate is taken.
    """


class InvalidInput(ForumError, ValueError):
    """Raised for malformed arguments, before any storage access."""


class DuplicateAccount(ForumError):
    """Raised when registering a username or email that already exists."""
