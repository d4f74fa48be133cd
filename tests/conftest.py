# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SESSION_SWEEP_ENABLED", "false")

from forum_stage.api.v1 import dependencies as deps
from forum_stage.core.security import hash_password
from forum_stage.core.settings import Settings
from forum_stage.db.session import Base, build_engine
from forum_stage.db.session import get_db as app_get_session
from forum_stage.main import app as fastapi_app
from forum_stage.models import Comment, Post, User
from forum_stage.services import user_store
from forum_stage.services.clock import FrozenClock
from forum_stage.services.federation import ProviderRegistry
from forum_stage.services.identity import IdentityResolver
from forum_stage.services.reactions import ReactionEngine
from forum_stage.services.session_store import SessionStore

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "correct horse battery staple"

_USER_COUNTER = count(1)


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = build_engine(TEST_DB_URL, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Session used by tests to seed and inspect data.

    Every helper commits, so no transaction is left open while a request
    handler shares the in-memory connection.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def test_settings() -> Settings:
    """Provide a Settings instance with test-friendly bounds."""
    return Settings(
        session_sweep_enabled=False,
    )


@pytest.fixture()
def clock() -> FrozenClock:
    """A frozen clock starting at the current wall time.

    Starting from real time keeps cookie expiries in the future for the
    HTTP client's cookie jar.
    """
    return FrozenClock(datetime.now(UTC).replace(microsecond=0))


@pytest.fixture()
def session_store(clock: FrozenClock, test_settings: Settings) -> SessionStore:
    return SessionStore(clock=clock, config=test_settings)


@pytest.fixture()
def reaction_engine(clock: FrozenClock, test_settings: Settings) -> ReactionEngine:
    return ReactionEngine(clock=clock, config=test_settings)


@pytest.fixture()
def identity_resolver(test_settings: Settings) -> IdentityResolver:
    return IdentityResolver(config=test_settings)


@pytest.fixture()
def provider_registry() -> ProviderRegistry:
    return ProviderRegistry()


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory that persists password users."""

    def _make_user(
        username: str | None = None,
        *,
        email: str | None = None,
        password: str | None = TEST_PASSWORD,
        user_id: int | None = None,
    ) -> User:
        n = next(_USER_COUNTER)
        username = username or f"user{n}"
        email = email or f"{username.lower()}@example.com"
        password_hash = hash_password(password) if password else ""
        if user_id is None:
            user = user_store.insert_user(db_session, username, email, password_hash)
        else:
            user = User(id=user_id, username=username, email=email, password_hash=password_hash)
            db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def test_user(make_user: Callable[..., User]) -> User:
    """Create and return a persisted test user."""
    return make_user("alice")


@pytest.fixture()
def other_user(make_user: Callable[..., User]) -> User:
    """Create and return a second persisted user."""
    return make_user("bob")


@pytest.fixture()
def test_post(db_session: Session, test_user: User) -> Post:
    """Create a baseline post for tests."""
    post = Post(author_id=test_user.id, title="Hello", body="Test post content")
    db_session.add(post)
    db_session.commit()
    return post


@pytest.fixture()
def test_comment(db_session: Session, test_post: Post, other_user: User) -> Comment:
    """Create a comment on the baseline post."""
    comment = Comment(post_id=test_post.id, author_id=other_user.id, body="First!")
    db_session.add(comment)
    db_session.commit()
    return comment


@pytest.fixture()
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def override_dependencies(
    app: FastAPI,
    session_factory: sessionmaker[Session],
    session_store: SessionStore,
    reaction_engine: ReactionEngine,
    identity_resolver: IdentityResolver,
    provider_registry: ProviderRegistry,
    test_settings: Settings,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    overrides: dict[Callable[..., object], Callable[..., object]] = {
        app_get_session: _get_session_override,
        deps.get_settings: lambda: test_settings,
        deps.get_session_store: lambda: session_store,
        deps.get_reaction_engine: lambda: reaction_engine,
        deps.get_identity_resolver: lambda: identity_resolver,
        deps.get_provider_registry: lambda: provider_registry,
    }
    app.dependency_overrides.update(overrides)
    try:
        yield
    finally:
        for dependency in overrides:
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI, override_dependencies: None) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def login(client: TestClient, username: str, password: str = TEST_PASSWORD) -> str:
    """Log ``client`` in and return the issued session token."""
    response = client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.cookies["session_token"]


@pytest.fixture()
def auth_client(client: TestClient, test_user: User) -> TestClient:
    """A client carrying an authenticated session for ``test_user``."""
    login(client, test_user.username)
    return client
