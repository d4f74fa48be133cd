"""initial forum schema

Revision ID: 5b2e9c41d7a0
Revises:
Create Date: 2026-10-19 09:12:44.318204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5b2e9c41d7a0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, sessions, posts, comments and reactions."""
    op.create_table(
        "forum_user",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "forum_session",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("token", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(kind = 'guest' AND user_id IS NULL) "
            "OR (kind = 'authenticated' AND user_id IS NOT NULL)",
            name="ck_forum_session_kind_subject",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["forum_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token"),
    )
    op.create_index("ix_forum_session_user_id", "forum_session", ["user_id"])
    op.create_index(
        "uq_forum_session_authenticated_user",
        "forum_session",
        ["user_id"],
        unique=True,
        sqlite_where=sa.text("kind = 'authenticated'"),
        postgresql_where=sa.text("kind = 'authenticated'"),
    )
    op.create_index("ix_forum_session_expires_at", "forum_session", ["expires_at"])
    op.create_index("ix_forum_session_last_activity_at", "forum_session", ["last_activity_at"])

    op.create_table(
        "post",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=80), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["author_id"], ["forum_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "comment",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["author_id"], ["forum_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_comment_post_id", "comment", ["post_id"])

    op.create_table(
        "reaction",
        sa.Column("actor_id", sa.Integer(), nullable=False),
        sa.Column("target_kind", sa.String(length=16), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("polarity", sa.SmallInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("polarity IN (1, -1)", name="ck_reaction_polarity"),
        sa.CheckConstraint(
            "target_kind IN ('post', 'comment')", name="ck_reaction_target_kind"
        ),
        sa.ForeignKeyConstraint(["actor_id"], ["forum_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("actor_id", "target_kind", "target_id"),
    )
    op.create_index("ix_reaction_target", "reaction", ["target_kind", "target_id"])


def downgrade() -> None:
    """Drop every forum table."""
    op.drop_index("ix_reaction_target", table_name="reaction")
    op.drop_table("reaction")
    op.drop_index("ix_comment_post_id", table_name="comment")
    op.drop_table("comment")
    op.drop_table("post")
    op.drop_index("ix_forum_session_last_activity_at", table_name="forum_session")
    op.drop_index("ix_forum_session_expires_at", table_name="forum_session")
    op.drop_index("ix_forum_session_user_id", table_name="forum_session")
    op.drop_index("uq_forum_session_authenticated_user", table_name="forum_session")
    op.drop_table("forum_session")
    op.drop_table("forum_user")
