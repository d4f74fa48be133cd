"""Session lifecycle: issuing, validating, refreshing, revoking and sweeping.

Every operation is a self-contained unit of work on the supplied database
session: it commits on success and rolls back on every failing exit path.
Reads select plain columns rather than ORM entities so that results never
come from a stale identity map after bulk updates, and they end their
transaction straight away: SQLite transactions open with BEGIN IMMEDIATE, so
an idle read transaction would otherwise hold the write lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import case, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from forum_stage.core.errors import ConflictRetryExhausted, InvalidInput, StorageUnavailable
from forum_stage.core.security import new_session_token
from forum_stage.core.settings import Settings, settings as default_settings
from forum_stage.db.time import as_utc
from forum_stage.models import (
    SESSION_KIND_AUTHENTICATED,
    SESSION_KIND_GUEST,
    ForumSession,
    User,
)
from forum_stage.services import user_store
from forum_stage.services.clock import Clock, system_clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedSession:
    """Token and expiry handed to the transport layer (e.g. a cookie)."""

    token: str
    expires_at: datetime


@dataclass(frozen=True)
class GuestSession:
    """Validated anonymous session. Never carries a user."""

    token: str
    expires_at: datetime

    @property
    def is_authenticated(self) -> bool:
        return False


@dataclass(frozen=True)
class AuthenticatedSession:
    """Validated session bound to exactly one user."""

    token: str
    expires_at: datetime
    user: User

    @property
    def is_authenticated(self) -> bool:
        return True


SessionContext = GuestSession | AuthenticatedSession


@dataclass(frozen=True)
class ActiveSessionCounts:
    """Approximate "currently online" figures."""

    authenticated: int
    guest: int


def _rollback_quietly(db: Session) -> None:
    try:
        db.rollback()
    except SQLAlchemyError:  # pragma: no cover - connection already gone
        logger.debug("Rollback failed after storage error", exc_info=True)


class SessionStore:
    """Owns session records in the ``forum_session`` table."""

    def __init__(self, clock: Clock | None = None, config: Settings | None = None) -> None:
        self.clock = clock or system_clock
        self.config = config or default_settings

    def _insert(
        self,
        db: Session,
        *,
        kind: str,
        user_id: int | None,
        ttl: timedelta,
    ) -> IssuedSession:
        now = self.clock.now()
        token = new_session_token()
        expires_at = now + ttl
        db.execute(
            insert(ForumSession).values(
                token=token,
                user_id=user_id,
                kind=kind,
                created_at=now,
                last_activity_at=now,
                expires_at=expires_at,
            )
        )
        return IssuedSession(token=token, expires_at=expires_at)

    def create_guest(self, db: Session) -> IssuedSession:
        """Issue a new anonymous session."""
        try:
            issued = self._insert(
                db,
                kind=SESSION_KIND_GUEST,
                user_id=None,
                ttl=self.config.guest_session_ttl,
            )
            db.commit()
        except SQLAlchemyError as err:
            _rollback_quietly(db)
            raise StorageUnavailable("Could not create guest session") from err
        return issued

    def create_authenticated(
        self,
        db: Session,
        user_id: int,
        ttl: timedelta | None = None,
    ) -> IssuedSession:
        """Issue a session for ``user_id``, replacing its previous ones.

        The delete of earlier authenticated sessions and the insert of the new
        one commit together, so a reader sees either the old session or the
        new one. Guest sessions are left alone.

        A unique index allows one authenticated session per user. When a
        concurrent login for the same user commits first, the insert fails on
        that index and the delete and insert are repeated against its row.

        Raises:
            InvalidInput: Non-positive ``ttl`` or unknown ``user_id``.
            ConflictRetryExhausted: Concurrent logins kept winning the insert.
            StorageUnavailable: The store could not be reached.
        """
        ttl = self.config.session_ttl if ttl is None else ttl
        if ttl <= timedelta(0):
            raise InvalidInput("Session lifetime must be positive")

        attempts = max(1, self.config.login_max_retries)
        try:
            for attempt in range(1, attempts + 1):
                try:
                    with db.begin_nested():
                        db.execute(
                            delete(ForumSession)
                            .where(
                                ForumSession.user_id == user_id,
                                ForumSession.kind == SESSION_KIND_AUTHENTICATED,
                            )
                            .execution_options(synchronize_session=False)
                        )
                        issued = self._insert(
                            db,
                            kind=SESSION_KIND_AUTHENTICATED,
                            user_id=user_id,
                            ttl=ttl,
                        )
                except IntegrityError as err:
                    if not user_store.exists_by_id(db, user_id):
                        db.rollback()
                        raise InvalidInput(f"Unknown user: {user_id}") from err
                    logger.debug(
                        "Concurrent login for user %s (attempt %d)", user_id, attempt
                    )
                    continue
                db.commit()
                return issued
        except SQLAlchemyError as err:
            _rollback_quietly(db)
            raise StorageUnavailable("Could not create authenticated session") from err

        db.rollback()
        raise ConflictRetryExhausted(
            f"Login for user {user_id} did not settle after {attempts} attempts"
        )

    def validate(self, db: Session, token: str | None) -> SessionContext | None:
        """Resolve ``token`` to a live session.

        Returns ``None`` for an unknown or expired token; that is the normal
        "not logged in" outcome rather than an error.

        Raises:
            StorageUnavailable: If the lookup itself failed. Callers must then
                treat the requester as unauthenticated.
        """
        if not token:
            return None

        now = self.clock.now()
        try:
            row = db.execute(
                select(ForumSession.kind, ForumSession.user_id, ForumSession.expires_at).where(
                    ForumSession.token == token,
                    ForumSession.expires_at > now,
                )
            ).first()
            user = None
            if row is not None and row.kind != SESSION_KIND_GUEST:
                user = user_store.get_by_id(db, row.user_id)
            db.commit()
        except SQLAlchemyError as err:
            _rollback_quietly(db)
            raise StorageUnavailable("Could not validate session") from err

        if row is None:
            return None
        expires_at = as_utc(row.expires_at)
        if row.kind == SESSION_KIND_GUEST:
            return GuestSession(token=token, expires_at=expires_at)
        if user is None:
            logger.warning("Session references missing user %s", row.user_id)
            return None
        return AuthenticatedSession(token=token, expires_at=expires_at, user=user)

    def touch(self, db: Session, token: str) -> None:
        """Record activity on a session. Failures are logged, never raised."""
        try:
            db.execute(
                update(ForumSession)
                .where(ForumSession.token == token)
                .values(last_activity_at=self.clock.now())
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as err:
            _rollback_quietly(db)
            logger.warning("Failed to update session activity: %s", err)

    def revoke(self, db: Session, token: str) -> None:
        """Delete a session. Revoking an unknown token is a no-op."""
        try:
            db.execute(
                delete(ForumSession)
                .where(ForumSession.token == token)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as err:
            _rollback_quietly(db)
            raise StorageUnavailable("Could not revoke session") from err

    def sweep(self, db: Session) -> int:
        """Delete every session whose expiry has passed; return how many."""
        try:
            result = db.execute(
                delete(ForumSession)
                .where(ForumSession.expires_at < self.clock.now())
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as err:
            _rollback_quietly(db)
            raise StorageUnavailable("Could not sweep expired sessions") from err
        return result.rowcount or 0

    def active_count(self, db: Session) -> ActiveSessionCounts:
        """Count sessions with activity inside the recency window."""
        since = self.clock.now() - self.config.active_window
        try:
            row = db.execute(
                select(
                    func.coalesce(
                        func.sum(case((ForumSession.kind == SESSION_KIND_AUTHENTICATED, 1), else_=0)),
                        0,
                    ),
                    func.coalesce(
                        func.sum(case((ForumSession.kind == SESSION_KIND_GUEST, 1), else_=0)),
                        0,
                    ),
                ).where(ForumSession.last_activity_at > since)
            ).one()
            db.commit()
        except SQLAlchemyError as err:
            _rollback_quietly(db)
            raise StorageUnavailable("Could not count active sessions") from err
        return ActiveSessionCounts(authenticated=int(row[0]), guest=int(row[1]))

    def session_duration(self, db: Session, token: str) -> timedelta | None:
        """Return how long a session has been in use, or None if unknown."""
        try:
            row = db.execute(
                select(ForumSession.created_at, ForumSession.last_activity_at).where(
                    ForumSession.token == token
                )
            ).first()
            db.commit()
        except SQLAlchemyError as err:
            _rollback_quietly(db)
            raise StorageUnavailable("Could not read session") from err
        if row is None:
            return None
        return as_utc(row.last_activity_at) - as_utc(row.created_at)
