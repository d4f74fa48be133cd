"""Like/dislike toggling on posts and comments.

Per (actor, target) pair the state is one of None, Liked or Disliked, stored as
the absence or presence of a single ``reaction`` row. Requesting the current
polarity clears it, requesting the opposite polarity flips it, and requesting
from empty inserts it.

Each toggle reads the current row and applies a conditional write inside a
savepoint: the insert is guarded by the composite primary key, and updates or
deletes only match the polarity that was read. If a concurrent writer got
there first the savepoint is rolled back and the cycle retried. An insert
that fails for any other reason, such as an actor that no longer exists, is
not retried. Read-only lookups commit at once so they never sit on SQLite's
write lock.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import case, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from forum_stage.core.errors import ConflictRetryExhausted, InvalidInput, StorageUnavailable
from forum_stage.core.settings import Settings, settings as default_settings
from forum_stage.models import Polarity, Reaction, TargetKind
from forum_stage.services import user_store
from forum_stage.services.clock import Clock, system_clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReactionCounts:
    """Aggregate reactions on one target."""

    likes: int
    dislikes: int


class _StaleReaction(Exception):
    """The row changed between the read and the conditional write."""


def coerce_polarity(value: Any) -> Polarity:
    """Accept a Polarity, its integer value, or a name such as ``"like"``."""
    if isinstance(value, Polarity):
        return value
    if isinstance(value, str):
        key = value.strip().upper()
        if key in Polarity.__members__:
            return Polarity[key]
    elif isinstance(value, int) and not isinstance(value, bool):
        try:
            return Polarity(value)
        except ValueError:
            pass
    raise InvalidInput(f"Invalid reaction polarity: {value!r}")


def coerce_target_kind(value: Any) -> TargetKind:
    """Accept a TargetKind or its string value."""
    if isinstance(value, TargetKind):
        return value
    if isinstance(value, str):
        try:
            return TargetKind(value.strip().lower())
        except ValueError:
            pass
    raise InvalidInput(f"Invalid reaction target kind: {value!r}")


def next_state(current: Polarity | None, requested: Polarity) -> Polarity | None:
    """Transition function of the toggle state machine."""
    if current == requested:
        return None
    return requested


class ReactionEngine:
    """Owns the ``reaction`` table."""

    def __init__(self, clock: Clock | None = None, config: Settings | None = None) -> None:
        self.clock = clock or system_clock
        self.config = config or default_settings

    @property
    def max_retries(self) -> int:
        return max(1, self.config.reaction_max_retries)

    def toggle(
        self,
        db: Session,
        actor_id: int,
        target_id: int,
        target_kind: TargetKind | str,
        polarity: Polarity | str | int,
    ) -> ReactionCounts:
        """Apply one vote and return the target's counts including its effect.

        Raises:
            InvalidInput: Malformed polarity or target kind, or unknown actor.
            ConflictRetryExhausted: Concurrent writers kept invalidating the read.
            StorageUnavailable: The store could not be reached.
        """
        requested = coerce_polarity(polarity)
        kind = coerce_target_kind(target_kind)

        try:
            for attempt in range(1, self.max_retries + 1):
                try:
                    with db.begin_nested():
                        self._apply(db, actor_id, target_id, kind, requested)
                except IntegrityError as err:
                    if not user_store.exists_by_id(db, actor_id):
                        db.rollback()
                        raise InvalidInput(f"Unknown actor: {actor_id}") from err
                    logger.debug(
                        "Reaction insert collided for actor %s on %s %s (attempt %d)",
                        actor_id,
                        kind.value,
                        target_id,
                        attempt,
                    )
                    continue
                except _StaleReaction:
                    logger.debug(
                        "Reaction conflict for actor %s on %s %s (attempt %d)",
                        actor_id,
                        kind.value,
                        target_id,
                        attempt,
                    )
                    continue

                counts = self._counts(db, target_id, kind)
                db.commit()
                return counts
        except SQLAlchemyError as err:
            db.rollback()
            raise StorageUnavailable("Could not record reaction") from err

        db.rollback()
        raise ConflictRetryExhausted(
            f"Reaction on {kind.value} {target_id} did not settle after {self.max_retries} attempts"
        )

    def _apply(
        self,
        db: Session,
        actor_id: int,
        target_id: int,
        kind: TargetKind,
        requested: Polarity,
    ) -> None:
        key = (
            Reaction.actor_id == actor_id,
            Reaction.target_kind == kind.value,
            Reaction.target_id == target_id,
        )
        stored = db.execute(select(Reaction.polarity).where(*key)).scalar_one_or_none()
        current = Polarity(stored) if stored is not None else None
        target = next_state(current, requested)
        now = self.clock.now()

        if current is None:
            db.execute(
                insert(Reaction).values(
                    actor_id=actor_id,
                    target_kind=kind.value,
                    target_id=target_id,
                    polarity=int(requested),
                    created_at=now,
                    updated_at=now,
                )
            )
            return

        if target is None:
            result = db.execute(
                delete(Reaction)
                .where(*key, Reaction.polarity == int(current))
                .execution_options(synchronize_session=False)
            )
        else:
            result = db.execute(
                update(Reaction)
                .where(*key, Reaction.polarity == int(current))
                .values(polarity=int(target), updated_at=now)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount != 1:
            raise _StaleReaction()

    def _counts(self, db: Session, target_id: int, kind: TargetKind) -> ReactionCounts:
        row = db.execute(
            select(
                func.coalesce(func.sum(case((Reaction.polarity == int(Polarity.LIKE), 1), else_=0)), 0),
                func.coalesce(
                    func.sum(case((Reaction.polarity == int(Polarity.DISLIKE), 1), else_=0)), 0
                ),
            ).where(Reaction.target_kind == kind.value, Reaction.target_id == target_id)
        ).one()
        return ReactionCounts(likes=int(row[0]), dislikes=int(row[1]))

    def counts(self, db: Session, target_id: int, target_kind: TargetKind | str) -> ReactionCounts:
        """Return like and dislike totals for a target."""
        kind = coerce_target_kind(target_kind)
        try:
            counts = self._counts(db, target_id, kind)
            db.commit()
        except SQLAlchemyError as err:
            db.rollback()
            raise StorageUnavailable("Could not count reactions") from err
        return counts

    def current(
        self,
        db: Session,
        actor_id: int,
        target_id: int,
        target_kind: TargetKind | str,
    ) -> Polarity | None:
        """Return the actor's polarity on a target, or None."""
        kind = coerce_target_kind(target_kind)
        try:
            stored = db.execute(
                select(Reaction.polarity).where(
                    Reaction.actor_id == actor_id,
                    Reaction.target_kind == kind.value,
                    Reaction.target_id == target_id,
                )
            ).scalar_one_or_none()
            db.commit()
        except SQLAlchemyError as err:
            db.rollback()
            raise StorageUnavailable("Could not read reaction") from err
        return Polarity(stored) if stored is not None else None

    def delete_all_for(self, db: Session, target_id: int, target_kind: TargetKind | str) -> int:
        """Remove every reaction on a target inside the caller's transaction.

        Does not commit: the target lifecycle owner deletes the target in the
        same transaction and commits both together.
        """
        kind = coerce_target_kind(target_kind)
        result = db.execute(
            delete(Reaction)
            .where(Reaction.target_kind == kind.value, Reaction.target_id == target_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def delete_all_for_many(
        self, db: Session, target_ids: Sequence[int], target_kind: TargetKind | str
    ) -> int:
        """Bulk variant of :meth:`delete_all_for` for cascading deletes."""
        if not target_ids:
            return 0
        kind = coerce_target_kind(target_kind)
        result = db.execute(
            delete(Reaction)
            .where(Reaction.target_kind == kind.value, Reaction.target_id.in_(list(target_ids)))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def liked_post_ids(self, db: Session, actor_id: int) -> list[int]:
        """Return ids of posts the actor currently likes."""
        try:
            rows = db.execute(
                select(Reaction.target_id)
                .where(
                    Reaction.actor_id == actor_id,
                    Reaction.target_kind == TargetKind.POST.value,
                    Reaction.polarity == int(Polarity.LIKE),
                )
                .order_by(Reaction.updated_at.desc(), Reaction.target_id.desc())
            ).scalars()
            post_ids = list(rows)
            db.commit()
        except SQLAlchemyError as err:
            db.rollback()
            raise StorageUnavailable("Could not list liked posts") from err
        return post_ids
