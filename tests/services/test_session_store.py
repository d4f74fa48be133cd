"""Tests for the session store."""

from datetime import timedelta

import pytest
from sqlalchemy import func, insert, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from forum_stage.core.errors import ConflictRetryExhausted, InvalidInput, StorageUnavailable
from forum_stage.core.settings import Settings
from forum_stage.db.time import as_utc
from forum_stage.models import SESSION_KIND_AUTHENTICATED, SESSION_KIND_GUEST, ForumSession
from forum_stage.services.session_store import (
    AuthenticatedSession,
    GuestSession,
    SessionStore,
)


def _broken_db(mocker):
    db = mocker.MagicMock(spec=Session)
    db.execute.side_effect = OperationalError("SELECT 1", {}, Exception("database is locked"))
    return db


def _session_rows(db_session: Session) -> int:
    count = db_session.execute(select(func.count()).select_from(ForumSession)).scalar_one()
    db_session.commit()
    return count


def test_create_guest_expires_after_guest_ttl(db_session, session_store, clock) -> None:
    issued = session_store.create_guest(db_session)

    assert issued.expires_at == clock.now() + timedelta(hours=24)
    context = session_store.validate(db_session, issued.token)
    assert isinstance(context, GuestSession)
    assert context.is_authenticated is False
    assert context.expires_at == issued.expires_at


def test_tokens_are_long_and_unique(db_session, session_store) -> None:
    tokens = {session_store.create_guest(db_session).token for _ in range(50)}

    assert len(tokens) == 50
    assert all(len(token) >= 43 for token in tokens)


def test_create_authenticated_binds_user(db_session, session_store, make_user, clock) -> None:
    user = make_user("carol", user_id=7)

    issued = session_store.create_authenticated(db_session, user.id)
    context = session_store.validate(db_session, issued.token)

    assert isinstance(context, AuthenticatedSession)
    assert context.user.id == 7
    assert context.is_authenticated is True
    assert issued.expires_at == clock.now() + timedelta(hours=24)


def test_custom_ttl(db_session, session_store, test_user, clock) -> None:
    issued = session_store.create_authenticated(db_session, test_user.id, ttl=timedelta(minutes=5))

    assert issued.expires_at == clock.now() + timedelta(minutes=5)


@pytest.mark.parametrize("ttl", [timedelta(0), timedelta(seconds=-1)])
def test_create_authenticated_rejects_non_positive_ttl(mocker, session_store, ttl) -> None:
    db = mocker.MagicMock(spec=Session)

    with pytest.raises(InvalidInput):
        session_store.create_authenticated(db, 1, ttl=ttl)
    db.execute.assert_not_called()


def test_second_login_invalidates_first(db_session, session_store, test_user) -> None:
    first = session_store.create_authenticated(db_session, test_user.id)
    second = session_store.create_authenticated(db_session, test_user.id)

    assert session_store.validate(db_session, first.token) is None
    context = session_store.validate(db_session, second.token)
    assert isinstance(context, AuthenticatedSession)
    assert context.user.id == test_user.id


def test_login_leaves_guest_sessions_alone(db_session, session_store, test_user) -> None:
    guest = session_store.create_guest(db_session)
    session_store.create_authenticated(db_session, test_user.id)

    assert isinstance(session_store.validate(db_session, guest.token), GuestSession)


def test_login_leaves_other_users_sessions_alone(
    db_session, session_store, test_user, other_user
) -> None:
    theirs = session_store.create_authenticated(db_session, other_user.id)
    session_store.create_authenticated(db_session, test_user.id)

    context = session_store.validate(db_session, theirs.token)
    assert isinstance(context, AuthenticatedSession)
    assert context.user.id == other_user.id


def test_validate_rejects_expired_session(db_session, session_store, clock) -> None:
    issued = session_store.create_guest(db_session)

    clock.advance(timedelta(hours=24) - timedelta(seconds=1))
    assert session_store.validate(db_session, issued.token) is not None

    clock.advance(timedelta(seconds=1))
    assert session_store.validate(db_session, issued.token) is None


@pytest.mark.parametrize("token", [None, "", "not-a-real-token"])
def test_validate_unknown_token(db_session, session_store, token) -> None:
    assert session_store.validate(db_session, token) is None


def test_validate_returns_none_when_user_is_gone(
    db_session, session_store, test_user, mocker
) -> None:
    issued = session_store.create_authenticated(db_session, test_user.id)
    mocker.patch("forum_stage.services.session_store.user_store.get_by_id", return_value=None)

    assert session_store.validate(db_session, issued.token) is None


def test_validate_storage_failure_raises(mocker, session_store) -> None:
    db = _broken_db(mocker)

    with pytest.raises(StorageUnavailable) as excinfo:
        session_store.validate(db, "some-token")
    assert isinstance(excinfo.value.__cause__, OperationalError)
    db.rollback.assert_called_once()


def test_create_guest_storage_failure_raises(mocker, session_store) -> None:
    with pytest.raises(StorageUnavailable):
        session_store.create_guest(_broken_db(mocker))


def test_touch_moves_activity_not_expiry(db_session, session_store, clock) -> None:
    issued = session_store.create_guest(db_session)

    clock.advance(timedelta(minutes=10))
    session_store.touch(db_session, issued.token)

    row = db_session.execute(
        select(ForumSession.last_activity_at, ForumSession.expires_at).where(
            ForumSession.token == issued.token
        )
    ).one()
    db_session.commit()
    assert as_utc(row.last_activity_at) == clock.now()
    assert as_utc(row.expires_at) == issued.expires_at
    assert session_store.session_duration(db_session, issued.token) == timedelta(minutes=10)


def test_touch_swallows_storage_errors(mocker, session_store, caplog) -> None:
    db = _broken_db(mocker)

    session_store.touch(db, "some-token")

    db.rollback.assert_called_once()
    assert "Failed to update session activity" in caplog.text


def test_touch_unknown_token_is_noop(db_session, session_store) -> None:
    session_store.touch(db_session, "missing")
    assert _session_rows(db_session) == 0


def test_revoke_is_idempotent(db_session, session_store, test_user) -> None:
    issued = session_store.create_authenticated(db_session, test_user.id)

    session_store.revoke(db_session, issued.token)
    session_store.revoke(db_session, issued.token)
    session_store.revoke(db_session, "never-issued")

    assert session_store.validate(db_session, issued.token) is None


def test_sweep_removes_only_expired(db_session, session_store, clock) -> None:
    now = clock.now()
    for token, expires_at in (("expired", now - timedelta(seconds=1)), ("live", now + timedelta(hours=1))):
        db_session.execute(
            insert(ForumSession).values(
                token=token,
                user_id=None,
                kind=SESSION_KIND_GUEST,
                created_at=now - timedelta(days=1),
                last_activity_at=now - timedelta(days=1),
                expires_at=expires_at,
            )
        )
    db_session.commit()

    assert session_store.sweep(db_session) == 1
    assert session_store.sweep(db_session) == 0
    assert session_store.validate(db_session, "live") is not None
    assert _session_rows(db_session) == 1


def test_sweep_storage_failure_raises(mocker, session_store) -> None:
    with pytest.raises(StorageUnavailable):
        session_store.sweep(_broken_db(mocker))


def test_active_count_uses_recency_window(db_session, session_store, test_user, clock) -> None:
    session_store.create_authenticated(db_session, test_user.id)
    stale_guest = session_store.create_guest(db_session)

    clock.advance(timedelta(minutes=4))
    fresh_guest = session_store.create_guest(db_session)
    session_store.touch(db_session, fresh_guest.token)

    counts = session_store.active_count(db_session)
    assert (counts.authenticated, counts.guest) == (1, 2)

    clock.advance(timedelta(minutes=2))
    counts = session_store.active_count(db_session)
    assert (counts.authenticated, counts.guest) == (0, 1)

    session_store.touch(db_session, stale_guest.token)
    counts = session_store.active_count(db_session)
    assert (counts.authenticated, counts.guest) == (0, 2)


def test_active_count_empty_store(db_session, session_store) -> None:
    counts = session_store.active_count(db_session)
    assert (counts.authenticated, counts.guest) == (0, 0)


def test_session_duration_unknown_token(db_session, session_store) -> None:
    assert session_store.session_duration(db_session, "missing") is None


def test_default_store_uses_system_clock() -> None:
    store = SessionStore()
    assert store.clock.now().tzinfo is not None


def _authenticated_rows(db_session: Session, user_id: int) -> int:
    count = db_session.execute(
        select(func.count())
        .select_from(ForumSession)
        .where(
            ForumSession.user_id == user_id,
            ForumSession.kind == SESSION_KIND_AUTHENTICATED,
        )
    ).scalar_one()
    db_session.commit()
    return count


def test_login_collision_is_retried(db_session, session_store, test_user, mocker) -> None:
    real_insert = SessionStore._insert
    attempts: list[int] = []

    def flaky_insert(self, db, **kwargs):
        attempts.append(1)
        if len(attempts) == 1:
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        return real_insert(self, db, **kwargs)

    mocker.patch.object(SessionStore, "_insert", autospec=True, side_effect=flaky_insert)

    issued = session_store.create_authenticated(db_session, test_user.id)

    assert len(attempts) == 2
    assert isinstance(session_store.validate(db_session, issued.token), AuthenticatedSession)
    assert _authenticated_rows(db_session, test_user.id) == 1


def test_login_retries_are_bounded(db_session, clock, test_user, mocker) -> None:
    store = SessionStore(clock=clock, config=Settings(login_max_retries=2))
    insert_row = mocker.patch.object(
        SessionStore,
        "_insert",
        side_effect=IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")),
    )

    with pytest.raises(ConflictRetryExhausted):
        store.create_authenticated(db_session, test_user.id)

    assert insert_row.call_count == 2
    assert not db_session.in_transaction()


def test_login_for_unknown_user_is_invalid(db_session, session_store) -> None:
    with pytest.raises(InvalidInput):
        session_store.create_authenticated(db_session, 99999)

    assert not db_session.in_transaction()
    assert _session_rows(db_session) == 0


def test_login_keeps_one_authenticated_row(db_session, session_store, test_user) -> None:
    for _ in range(3):
        session_store.create_authenticated(db_session, test_user.id)

    assert _authenticated_rows(db_session, test_user.id) == 1


def test_reads_do_not_leave_a_transaction_open(db_session, session_store, test_user) -> None:
    issued = session_store.create_authenticated(db_session, test_user.id)
    guest = session_store.create_guest(db_session)

    session_store.validate(db_session, issued.token)
    assert not db_session.in_transaction()
    session_store.validate(db_session, guest.token)
    assert not db_session.in_transaction()
    session_store.validate(db_session, "missing")
    assert not db_session.in_transaction()
    session_store.active_count(db_session)
    assert not db_session.in_transaction()
    session_store.session_duration(db_session, issued.token)
    assert not db_session.in_transaction()
