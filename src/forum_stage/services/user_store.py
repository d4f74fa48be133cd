"""CRUD-style helpers for reading and inserting users.

Callers own the transaction: nothing here commits.
"""
from __future__ import annotations

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from forum_stage.models.user import User

__all__ = [
    "get_by_id",
    "get_by_email",
    "get_by_username",
    "exists_by_username",
    "exists_by_email",
    "exists_by_id",
    "insert_user",
]


def get_by_id(db: Session, user_id: int) -> User | None:
    """Return a single user by primary key."""
    return db.get(User, user_id)


def get_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def get_by_username(db: Session, username: str) -> User | None:
    return db.execute(select(User).where(User.username == username)).scalar_one_or_none()


def exists_by_username(db: Session, username: str) -> bool:
    return bool(db.execute(select(exists().where(User.username == username))).scalar())


def exists_by_email(db: Session, email: str) -> bool:
    return bool(db.execute(select(exists().where(User.email == email))).scalar())


def insert_user(db: Session, username: str, email: str, password_hash: str = "") -> User:
    """Stage a new user and flush it so uniqueness violations surface here."""
    user = User(username=username, email=email, password_hash=password_hash)
    db.add(user)
    db.flush()
    return user


def exists_by_id(db: Session, user_id: int) -> bool:
    return bool(db.execute(select(exists().where(User.id == user_id))).scalar())
