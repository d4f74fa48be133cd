"""Reaction-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from forum_stage.models import TargetKind


class ReactionToggle(BaseModel):
    """Schema for toggling a like or dislike."""

    target_kind: TargetKind
    target_id: int = Field(..., ge=1)
    polarity: Literal["like", "dislike"] = Field(
        ..., description="Repeating the current polarity clears it"
    )


class ReactionCountsResponse(BaseModel):
    """Aggregate reactions on a target."""

    target_kind: TargetKind
    target_id: int
    likes: int
    dislikes: int


class MyReactionResponse(BaseModel):
    """The caller's own reaction on a target, if any."""

    reaction: Literal["like", "dislike"] | None
