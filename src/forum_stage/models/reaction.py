# src/forum_stage/models/reaction.py
"""Models capturing like/dislike reactions on posts and comments."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from forum_stage.db.session import Base
from forum_stage.db.time import utcnow


class Polarity(enum.IntEnum):
    """Stored reaction direction. The absence of a row means no reaction."""

    LIKE = 1
    DISLIKE = -1


class TargetKind(str, enum.Enum):
    """Kinds of content that can receive reactions."""

    POST = "post"
    COMMENT = "comment"


class Reaction(Base):
    """Per-user reaction on a post or comment."""

    __tablename__ = "reaction"
    __table_args__ = (
        CheckConstraint("polarity IN (1, -1)", name="ck_reaction_polarity"),
        CheckConstraint("target_kind IN ('post', 'comment')", name="ck_reaction_target_kind"),
        Index("ix_reaction_target", "target_kind", "target_id"),
    )

    # Composite primary key prevents duplicate reactions from the same user.
    actor_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("forum_user.id", ondelete="CASCADE"),
        primary_key=True,
    )
    target_kind: Mapped[str] = mapped_column(String(16), primary_key=True)
    target_id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # 1 = like, -1 = dislike.
    polarity: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
