# src/forum_stage/models/user.py
"""SQLAlchemy model for forum accounts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from forum_stage.db.session import Base
from forum_stage.db.time import utcnow


class User(Base):
    """Forum account, created by password registration or federated login."""

    __tablename__ = "forum_user"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    # Empty for federated-only accounts; those can never log in with a password.
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    @property
    def is_federated_only(self) -> bool:
        """Return True when the account has no password credential."""
        return not self.password_hash
