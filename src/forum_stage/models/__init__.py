# src/forum_stage/models/__init__.py
"""SQLAlchemy models for the Forum Stage application."""

from .post import Comment, Post
from .reaction import Polarity, Reaction, TargetKind
from .session import SESSION_KIND_AUTHENTICATED, SESSION_KIND_GUEST, ForumSession
from .user import User

__all__ = [
    "Comment", "Post",
    "Polarity", "Reaction", "TargetKind",
    "ForumSession", "SESSION_KIND_AUTHENTICATED", "SESSION_KIND_GUEST",
    "User",
]
