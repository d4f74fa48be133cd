# src/forum_stage/api/v1/endpoints/auth.py
"""Authentication endpoints for the Forum API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse

from forum_stage.api.v1.dependencies import (
    IdentityResolverDep,
    ProviderRegistryDep,
    SessionContextDep,
    SessionDep,
    SessionStoreDep,
    SettingsDep,
    clear_session_cookie,
    set_session_cookie,
)
from forum_stage.core.security import new_oauth_state
from forum_stage.services import accounts
from forum_stage.services.federation import (
    FederatedLoginError,
    IdentityProvider,
    ProviderRegistry,
    complete_federated_login,
)
from forum_stage.services.session_store import AuthenticatedSession
from forum_stage.schemas.user import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    SessionResponse,
    UserResponse,
)

router = APIRouter(prefix="/auth", tags=["authentication"])
logger = logging.getLogger(__name__)


def _get_provider_or_404(registry: ProviderRegistry, name: str) -> IdentityProvider:
    provider = registry.get(name)
    if provider is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown provider")
    return provider


@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    response: Response,
    db: SessionDep,
    store: SessionStoreDep,
    config: SettingsDep,
) -> LoginResponse:
    """Create a password account and log it in."""
    user = accounts.register(db, payload.username, payload.email, payload.password)
    issued = store.create_authenticated(db, user.id)
    set_session_cookie(response, issued, config)
    return LoginResponse(user=UserResponse.model_validate(user), expires_at=issued.expires_at)


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    response: Response,
    db: SessionDep,
    store: SessionStoreDep,
    config: SettingsDep,
) -> LoginResponse:
    """Exchange username and password for an authenticated session."""
    user = accounts.authenticate(db, payload.username, payload.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    issued = store.create_authenticated(db, user.id)
    set_session_cookie(response, issued, config)
    return LoginResponse(user=UserResponse.model_validate(user), expires_at=issued.expires_at)


@router.post("/logout")
def logout(
    response: Response,
    context: SessionContextDep,
    db: SessionDep,
    store: SessionStoreDep,
    config: SettingsDep,
) -> dict[str, str]:
    """Revoke the current session and clear the cookie."""
    if context is not None:
        store.revoke(db, context.token)
    clear_session_cookie(response, config)
    return {"status": "ok"}


@router.get("/me", response_model=SessionResponse)
def whoami(context: SessionContextDep, db: SessionDep, store: SessionStoreDep) -> SessionResponse:
    """Describe the session attached to this request."""
    if context is None:
        return SessionResponse(authenticated=False)

    duration = store.session_duration(db, context.token)
    user = None
    if isinstance(context, AuthenticatedSession):
        user = UserResponse.model_validate(context.user)
    return SessionResponse(
        authenticated=context.is_authenticated,
        user=user,
        expires_at=context.expires_at,
        active_seconds=duration.total_seconds() if duration is not None else None,
    )


@router.get("/oauth/{provider_name}/login")
def oauth_login(
    provider_name: str,
    registry: ProviderRegistryDep,
    config: SettingsDep,
) -> RedirectResponse:
    """Redirect the browser to the provider's consent page."""
    provider = _get_provider_or_404(registry, provider_name)
    state = new_oauth_state()
    redirect = RedirectResponse(
        provider.authorization_url(state),
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )
    redirect.set_cookie(
        key=config.oauth_state_cookie_name,
        value=state,
        max_age=config.oauth_state_ttl_seconds,
        path="/",
        httponly=True,
        samesite="lax",
    )
    return redirect


@router.get("/oauth/{provider_name}/callback")
async def oauth_callback(
    provider_name: str,
    request: Request,
    db: SessionDep,
    store: SessionStoreDep,
    resolver: IdentityResolverDep,
    registry: ProviderRegistryDep,
    config: SettingsDep,
    code: str = "",
    state: str = "",
) -> RedirectResponse:
    """Complete a federated login and land on the home page."""
    provider = _get_provider_or_404(registry, provider_name)
    try:
        result = await complete_federated_login(
            db,
            provider=provider,
            code=code,
            state=state,
            expected_state=request.cookies.get(config.oauth_state_cookie_name),
            resolver=resolver,
            store=store,
        )
    except FederatedLoginError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err

    redirect = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    redirect.delete_cookie(key=config.oauth_state_cookie_name, path="/", httponly=True)
    set_session_cookie(redirect, result.session, config)
    return redirect
