# src/forum_stage/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .reaction import MyReactionResponse, ReactionCountsResponse, ReactionToggle
from .user import LoginRequest, LoginResponse, RegisterRequest, SessionResponse, UserResponse

__all__ = [
    "MyReactionResponse", "ReactionCountsResponse", "ReactionToggle",
    "LoginRequest", "LoginResponse", "RegisterRequest", "SessionResponse", "UserResponse",
]
