"""User and session related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Schema for password registration."""

    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=256)


class LoginRequest(BaseModel):
    """Schema for password login."""

    username: str
    password: str


class UserResponse(BaseModel):
    """Public view of a user account."""

    id: int
    username: str

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    """Issued authenticated session."""

    user: UserResponse
    expires_at: datetime


class SessionResponse(BaseModel):
    """Describes the session attached to the current request."""

    authenticated: bool
    user: UserResponse | None = None
    expires_at: datetime | None = None
    active_seconds: float | None = Field(
        None, description="Time between session creation and its last recorded activity"
    )
