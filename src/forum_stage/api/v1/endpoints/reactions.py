# src/forum_stage/api/v1/endpoints/reactions.py
"""Reaction (like/dislike) endpoints for the Forum API."""

from fastapi import APIRouter, HTTPException, status
from sqlalchemy.orm import Session

from forum_stage.api.v1.dependencies import CurrentUserDep, ReactionEngineDep, SessionDep
from forum_stage.models import Polarity, TargetKind
from forum_stage.schemas.reaction import (
    MyReactionResponse,
    ReactionCountsResponse,
    ReactionToggle,
)
from forum_stage.services.content import target_exists

router = APIRouter(prefix="/reactions", tags=["reactions"])


def _ensure_target_or_404(db: Session, target_id: int, target_kind: TargetKind) -> None:
    if not target_exists(db, target_id, target_kind):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{target_kind.value.capitalize()} not found",
        )


@router.post("/", response_model=ReactionCountsResponse)
def toggle_reaction(
    payload: ReactionToggle,
    current_user: CurrentUserDep,
    db: SessionDep,
    engine: ReactionEngineDep,
) -> ReactionCountsResponse:
    """Like or dislike a post or comment; repeating the same choice clears it."""
    _ensure_target_or_404(db, payload.target_id, payload.target_kind)
    counts = engine.toggle(
        db,
        current_user.id,
        payload.target_id,
        payload.target_kind,
        payload.polarity,
    )
    return ReactionCountsResponse(
        target_kind=payload.target_kind,
        target_id=payload.target_id,
        likes=counts.likes,
        dislikes=counts.dislikes,
    )


@router.get("/liked-posts")
def liked_posts(
    current_user: CurrentUserDep,
    db: SessionDep,
    engine: ReactionEngineDep,
) -> dict[str, list[int]]:
    """List the posts the current user likes."""
    return {"post_ids": engine.liked_post_ids(db, current_user.id)}


@router.get("/{target_kind}/{target_id}", response_model=ReactionCountsResponse)
def get_counts(
    target_kind: TargetKind,
    target_id: int,
    db: SessionDep,
    engine: ReactionEngineDep,
) -> ReactionCountsResponse:
    """Return like and dislike totals for a target."""
    counts = engine.counts(db, target_id, target_kind)
    return ReactionCountsResponse(
        target_kind=target_kind,
        target_id=target_id,
        likes=counts.likes,
        dislikes=counts.dislikes,
    )


@router.get("/{target_kind}/{target_id}/mine", response_model=MyReactionResponse)
def get_my_reaction(
    target_kind: TargetKind,
    target_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    engine: ReactionEngineDep,
) -> MyReactionResponse:
    """Get the current user's reaction on a target."""
    polarity = engine.current(db, current_user.id, target_id, target_kind)
    if polarity is None:
        return MyReactionResponse(reaction=None)
    return MyReactionResponse(reaction="like" if polarity is Polarity.LIKE else "dislike")
