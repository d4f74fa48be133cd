"""Federated (OAuth-style) login glue.

The token exchange with each provider lives behind the ``IdentityProvider``
protocol; this module only checks the state nonce, turns a verified identity
into a local user and issues the authenticated session. The nonce is issued
fresh for every login attempt and travels back in a short-lived cookie.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.orm import Session

from forum_stage.core.errors import InvalidInput
from forum_stage.models import User
from forum_stage.services.identity import IdentityResolver
from forum_stage.services.session_store import IssuedSession, SessionStore

logger = logging.getLogger(__name__)


class FederatedLoginError(InvalidInput):
    """Raised when a provider callback cannot be turned into a login."""


@dataclass(frozen=True)
class FederatedIdentity:
    """Identity asserted by an external provider after a successful exchange."""

    email: str | None
    display_name: str | None
    provider: str


class IdentityProvider(Protocol):
    """External identity-assertion service (Google, GitHub, ...)."""

    name: str

    def authorization_url(self, state: str) -> str: ...

    async def fetch_identity(self, code: str) -> FederatedIdentity: ...


class ProviderRegistry:
    """Configured identity providers, keyed by name."""

    def __init__(self, providers: list[IdentityProvider] | None = None) -> None:
        self._providers: dict[str, IdentityProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: IdentityProvider) -> None:
        self._providers[provider.name.lower()] = provider

    def get(self, name: str) -> IdentityProvider | None:
        return self._providers.get(name.lower())

    def names(self) -> list[str]:
        return sorted(self._providers)


def state_is_valid(expected: str | None, state: str | None) -> bool:
    """Constant-time comparison of the callback state against the issued nonce."""
    if not expected or not state:
        return False
    return secrets.compare_digest(state, expected)


@dataclass(frozen=True)
class FederatedLogin:
    user: User
    session: IssuedSession


async def complete_federated_login(
    db: Session,
    *,
    provider: IdentityProvider,
    code: str,
    state: str | None,
    expected_state: str | None,
    resolver: IdentityResolver,
    store: SessionStore,
) -> FederatedLogin:
    """Finish a provider callback: verify, resolve the user, open a session.

    Raises:
        FederatedLoginError: Bad state nonce, missing code or no usable email.
    """
    if not state_is_valid(expected_state, state):
        logger.warning("Rejected %s callback with invalid state", provider.name)
        raise FederatedLoginError("Invalid OAuth state")
    if not code:
        raise FederatedLoginError("Missing authorization code")

    identity = await provider.fetch_identity(code)
    if not identity.email or not identity.email.strip():
        logger.warning("No verified email returned by %s", provider.name)
        raise FederatedLoginError("Provider did not return a verified email")

    # Storage work is blocking; keep it off the event loop.
    user = await asyncio.to_thread(
        resolver.resolve_or_create,
        db,
        identity.email,
        identity.display_name,
        identity.provider or provider.name,
    )
    issued = await asyncio.to_thread(store.create_authenticated, db, user.id)
    return FederatedLogin(user=user, session=issued)
