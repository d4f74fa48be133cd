# src/forum_stage/services/__init__.py
"""Business logic services for the Forum Stage application."""

from .clock import Clock, FrozenClock, SystemClock
from .identity import IdentityResolver
from .reactions import ReactionCounts, ReactionEngine
from .session_store import (
    ActiveSessionCounts,
    AuthenticatedSession,
    GuestSession,
    IssuedSession,
    SessionContext,
    SessionStore,
)
from .session_sweep import SessionSweepWorker

__all__ = [
    "Clock", "FrozenClock", "SystemClock",
    "IdentityResolver",
    "ReactionCounts", "ReactionEngine",
    "ActiveSessionCounts", "AuthenticatedSession", "GuestSession",
    "IssuedSession", "SessionContext", "SessionStore",
    "SessionSweepWorker",
]
