"""Password-based registration and login."""
from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from forum_stage.core import security
from forum_stage.core.errors import DuplicateAccount, InvalidInput, StorageUnavailable
from forum_stage.models import User
from forum_stage.services import user_store
from forum_stage.services.identity import normalise_email

__all__ = ["register", "authenticate"]


def register(db: Session, username: str, email: str, password: str) -> User:
    """Create a password account.

    Raises:
        InvalidInput: A field is missing.
        DuplicateAccount: The username or email is already registered.
    """
    username = (username or "").strip()
    if not username or not password:
        raise InvalidInput("Username, email and password are required")
    email = normalise_email(email)

    try:
        taken = db.execute(
            select(User.id).where(or_(User.username == username, User.email == email))
        ).first()
        if taken is not None:
            db.rollback()
            raise DuplicateAccount("Username or email already exists")
        user = user_store.insert_user(db, username, email, security.hash_password(password))
        db.commit()
    except IntegrityError as err:
        db.rollback()
        raise DuplicateAccount("Username or email already exists") from err
    except SQLAlchemyError as err:
        db.rollback()
        raise StorageUnavailable("Could not register user") from err
    return user


def authenticate(db: Session, username: str, password: str) -> User | None:
    """Return the user if the credentials match.

    Federated-only accounts (empty password hash) never match.
    """
    if not username or not password:
        return None
    try:
        user = user_store.get_by_username(db, username.strip())
        db.commit()
    except SQLAlchemyError as err:
        db.rollback()
        raise StorageUnavailable("Could not look up user") from err
    if user is None or not security.verify_password(password, user.password_hash):
        return None
    return user
