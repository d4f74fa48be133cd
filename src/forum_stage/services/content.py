"""Minimal post and comment lifecycle used to anchor reactions.

Deleting a target removes its reactions in the same transaction, since the
reaction table has no foreign key onto polymorphic targets.
"""
from __future__ import annotations

import logging

from sqlalchemy import delete, exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from forum_stage.core.errors import InvalidInput, StorageUnavailable
from forum_stage.models import Comment, Post, TargetKind
from forum_stage.models.post import MAX_COMMENT_LENGTH, MAX_POST_LENGTH, MAX_TITLE_LENGTH
from forum_stage.services.reactions import ReactionEngine, coerce_target_kind

logger = logging.getLogger(__name__)


def create_post(db: Session, author_id: int, title: str, body: str) -> Post:
    """Persist a new post after trimming and length checks."""
    title = (title or "").strip()
    body = (body or "").strip()
    if not title or len(title) > MAX_TITLE_LENGTH:
        raise InvalidInput("Post title is empty or too long")
    if not body or len(body) > MAX_POST_LENGTH:
        raise InvalidInput("Post body is empty or too long")

    post = Post(author_id=author_id, title=title, body=body)
    try:
        db.add(post)
        db.commit()
    except SQLAlchemyError as err:
        db.rollback()
        raise StorageUnavailable("Could not create post") from err
    return post


def create_comment(db: Session, post_id: int, author_id: int, body: str) -> Comment:
    """Persist a new comment on an existing post."""
    body = (body or "").strip()
    if not body or len(body) > MAX_COMMENT_LENGTH:
        raise InvalidInput("Comment body is empty or too long")

    comment = Comment(post_id=post_id, author_id=author_id, body=body)
    try:
        db.add(comment)
        db.commit()
    except SQLAlchemyError as err:
        db.rollback()
        raise StorageUnavailable("Could not create comment") from err
    return comment


def target_exists(db: Session, target_id: int, target_kind: TargetKind | str) -> bool:
    kind = coerce_target_kind(target_kind)
    model = Post if kind is TargetKind.POST else Comment
    try:
        found = bool(db.execute(select(exists().where(model.id == target_id))).scalar())
        db.commit()
    except SQLAlchemyError as err:
        db.rollback()
        raise StorageUnavailable("Could not look up reaction target") from err
    return found


def delete_comment(db: Session, comment_id: int, reactions: ReactionEngine) -> bool:
    """Delete a comment and its reactions. Returns False if it did not exist."""
    try:
        removed = reactions.delete_all_for(db, comment_id, TargetKind.COMMENT)
        result = db.execute(
            delete(Comment)
            .where(Comment.id == comment_id)
            .execution_options(synchronize_session="fetch")
        )
        db.commit()
    except SQLAlchemyError as err:
        db.rollback()
        raise StorageUnavailable("Could not delete comment") from err

    logger.debug("Deleted comment %s with %d reactions", comment_id, removed)
    return bool(result.rowcount)


def delete_post(db: Session, post_id: int, reactions: ReactionEngine) -> bool:
    """Delete a post, its comments and every reaction on any of them."""
    try:
        comment_ids = list(
            db.execute(select(Comment.id).where(Comment.post_id == post_id)).scalars()
        )
        reactions.delete_all_for_many(db, comment_ids, TargetKind.COMMENT)
        reactions.delete_all_for(db, post_id, TargetKind.POST)
        db.execute(
            delete(Comment)
            .where(Comment.post_id == post_id)
            .execution_options(synchronize_session="fetch")
        )
        result = db.execute(
            delete(Post).where(Post.id == post_id).execution_options(synchronize_session="fetch")
        )
        db.commit()
    except SQLAlchemyError as err:
        db.rollback()
        raise StorageUnavailable("Could not delete post") from err
    return bool(result.rowcount)
