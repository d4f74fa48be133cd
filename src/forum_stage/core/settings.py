"""Application settings and configuration.

This module defines all configuration options for the Forum Stage application.
Settings are loaded from environment variables with sensible defaults.
"""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files. The
    instance is passed explicitly to the services that need it; nothing in the
    session or reaction layers reads process-wide mutable state.
    """

    # Application metadata
    app_name: str = Field(default="Forum Stage", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./forum.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    # Upper bound on how long a storage call may wait for a lock or connection.
    database_timeout_seconds: float = Field(default=10.0, alias="DATABASE_TIMEOUT_SECONDS")

    # Session lifecycle
    session_cookie_name: str = Field(default="session_token", alias="SESSION_COOKIE_NAME")
    session_ttl_hours: int = Field(default=24, alias="SESSION_TTL_HOURS")
    guest_session_ttl_hours: int = Field(default=24, alias="GUEST_SESSION_TTL_HOURS")
    session_sweep_enabled: bool = Field(default=True, alias="SESSION_SWEEP_ENABLED")
    session_sweep_interval_seconds: float = Field(
        default=3600.0,
        alias="SESSION_SWEEP_INTERVAL_SECONDS",
    )
    active_window_seconds: int = Field(default=300, alias="ACTIVE_WINDOW_SECONDS")

    # Conflict resolution bounds
    reaction_max_retries: int = Field(default=5, alias="REACTION_MAX_RETRIES")
    login_max_retries: int = Field(default=5, alias="LOGIN_MAX_RETRIES")
    username_max_attempts: int = Field(default=50, alias="USERNAME_MAX_ATTEMPTS")
    username_max_length: int = Field(default=64, alias="USERNAME_MAX_LENGTH")

    # Federated login
    oauth_state_cookie_name: str = Field(default="oauth_state", alias="OAUTH_STATE_COOKIE_NAME")
    oauth_state_ttl_seconds: int = Field(default=600, alias="OAUTH_STATE_TTL_SECONDS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(hours=self.session_ttl_hours)

    @property
    def guest_session_ttl(self) -> timedelta:
        return timedelta(hours=self.guest_session_ttl_hours)

    @property
    def active_window(self) -> timedelta:
        return timedelta(seconds=self.active_window_seconds)


settings = Settings()
