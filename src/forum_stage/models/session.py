# src/forum_stage/models/session.py
"""SQLAlchemy model for browser sessions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from forum_stage.db.session import Base
from forum_stage.db.time import utcnow

SESSION_KIND_GUEST = "guest"
SESSION_KIND_AUTHENTICATED = "authenticated"


class ForumSession(Base):
    """Opaque-token session, either anonymous (guest) or bound to a user.

    Only ``expires_at`` decides whether a session is usable;
    ``last_activity_at`` feeds the "currently online" counters.
    """

    __tablename__ = "forum_session"
    __table_args__ = (
        CheckConstraint(
            "(kind = 'guest' AND user_id IS NULL) "
            "OR (kind = 'authenticated' AND user_id IS NOT NULL)",
            name="ck_forum_session_kind_subject",
        ),
        Index("ix_forum_session_user_id", "user_id"),
        # At most one authenticated session per user.
        Index(
            "uq_forum_session_authenticated_user",
            "user_id",
            unique=True,
            sqlite_where=text("kind = 'authenticated'"),
            postgresql_where=text("kind = 'authenticated'"),
        ),
        Index("ix_forum_session_expires_at", "expires_at"),
        Index("ix_forum_session_last_activity_at", "last_activity_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    user_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("forum_user.id", ondelete="CASCADE"),
        nullable=True,
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
