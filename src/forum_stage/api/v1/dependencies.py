"""Shared API dependencies for sessions and the core services."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from forum_stage.core.errors import StorageUnavailable
from forum_stage.core.settings import Settings, settings
from forum_stage.db.session import get_db
from forum_stage.models import User
from forum_stage.services.federation import ProviderRegistry
from forum_stage.services.identity import IdentityResolver
from forum_stage.services.reactions import ReactionEngine
from forum_stage.services.session_store import (
    AuthenticatedSession,
    GuestSession,
    IssuedSession,
    SessionContext,
    SessionStore,
)

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    return settings


@lru_cache
def get_session_store() -> SessionStore:
    """Return the shared session store."""
    return SessionStore(config=settings)


@lru_cache
def get_reaction_engine() -> ReactionEngine:
    """Return the shared reaction engine."""
    return ReactionEngine(config=settings)


@lru_cache
def get_identity_resolver() -> IdentityResolver:
    return IdentityResolver(config=settings)


@lru_cache
def get_provider_registry() -> ProviderRegistry:
    """Return configured identity providers (none by default)."""
    return ProviderRegistry()


# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
ReactionEngineDep = Annotated[ReactionEngine, Depends(get_reaction_engine)]
IdentityResolverDep = Annotated[IdentityResolver, Depends(get_identity_resolver)]
ProviderRegistryDep = Annotated[ProviderRegistry, Depends(get_provider_registry)]


def set_session_cookie(response: Response, issued: IssuedSession, config: Settings) -> None:
    """Hand the session token to the client."""
    response.set_cookie(
        key=config.session_cookie_name,
        value=issued.token,
        expires=issued.expires_at,
        path="/",
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response, config: Settings) -> None:
    response.delete_cookie(key=config.session_cookie_name, path="/", httponly=True)


def get_session_context(
    request: Request,
    response: Response,
    db: SessionDep,
    store: SessionStoreDep,
    config: SettingsDep,
) -> SessionContext | None:
    """Resolve the caller's session, issuing a guest session when needed.

    Returns None only when storage is unavailable; the caller is then treated
    as an anonymous visitor and never as authenticated.
    """
    token = request.cookies.get(config.session_cookie_name)
    try:
        context = store.validate(db, token)
    except StorageUnavailable as err:
        logger.warning("Session validation failed, treating request as anonymous: %s", err.__cause__)
        return None

    if context is None:
        try:
            issued = store.create_guest(db)
        except StorageUnavailable as err:
            logger.warning("Could not issue guest session: %s", err.__cause__)
            return None
        set_session_cookie(response, issued, config)
        return GuestSession(token=issued.token, expires_at=issued.expires_at)

    store.touch(db, context.token)
    return context


SessionContextDep = Annotated[SessionContext | None, Depends(get_session_context)]


def get_current_user(context: SessionContextDep) -> User:
    """Return the authenticated user or reject the request."""
    if not isinstance(context, AuthenticatedSession):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Login required",
        )
    return context.user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
