"""System endpoints for the Forum API."""

from __future__ import annotations

from fastapi import APIRouter

from forum_stage.api.v1.dependencies import SessionDep, SessionStoreDep, SettingsDep

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/sessions")
def active_sessions(
    db: SessionDep,
    store: SessionStoreDep,
    config: SettingsDep,
) -> dict[str, int]:
    """Return approximate counts of users and guests currently online."""
    counts = store.active_count(db)
    return {
        "authenticated": counts.authenticated,
        "guest": counts.guest,
        "window_seconds": config.active_window_seconds,
    }


@router.get("/config")
def get_public_config(config: SettingsDep) -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and connection strings.
    """
    return {
        "app": {
            "name": config.app_name,
            "version": config.app_version,
            "debug": config.debug,
        },
        "sessions": {
            "ttl_hours": config.session_ttl_hours,
            "guest_ttl_hours": config.guest_session_ttl_hours,
            "sweep_interval_seconds": config.session_sweep_interval_seconds,
            "active_window_seconds": config.active_window_seconds,
        },
    }
