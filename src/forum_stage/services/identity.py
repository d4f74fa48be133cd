"""Mapping of federated identities onto local user accounts."""

from __future__ import annotations

import logging
import re
import secrets
from collections.abc import Iterator
from typing import Final

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from forum_stage.core.errors import ConflictRetryExhausted, InvalidInput, StorageUnavailable
from forum_stage.core.settings import Settings, settings as default_settings
from forum_stage.models import User
from forum_stage.services import user_store

logger = logging.getLogger(__name__)

PROVIDER_PREFIXES: Final[dict[str, str]] = {
    "github": "GIT_",
    "google": "GO_",
}
RANDOM_SUFFIX_ATTEMPTS: Final[int] = 5
# Room kept at the end of a candidate for "_<8 hex chars>" or a counter.
_SUFFIX_RESERVE: Final[int] = 9
_USERNAME_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


def normalise_email(email: str | None) -> str:
    """Return a canonical email or raise InvalidInput when unusable."""
    cleaned = (email or "").strip().lower()
    if not cleaned or "@" not in cleaned:
        raise InvalidInput("A verified email address is required")
    return cleaned


class IdentityResolver:
    """Finds or creates the local user behind a verified external identity."""

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config or default_settings

    def candidate_username(self, email: str, display_name: str | None, provider: str) -> str:
        """Derive the deterministic base username for a new federated account."""
        local_part = email.split("@", 1)[0]
        if provider == "google":
            stem = local_part.split(".", 1)[0]
        else:
            stem = (display_name or "").strip() or local_part

        stem = _USERNAME_UNSAFE.sub("", stem) or "user"
        username = PROVIDER_PREFIXES[provider] + stem
        return username[: max(1, self.config.username_max_length - _SUFFIX_RESERVE)]

    def _candidates(self, base: str) -> Iterator[str]:
        yield base
        for n in range(2, self.config.username_max_attempts + 1):
            yield f"{base}{n}"
        # Fallback so naming can never wedge account creation.
        for _ in range(RANDOM_SUFFIX_ATTEMPTS):
            yield f"{base}_{secrets.token_hex(4)}"

    def resolve_or_create(
        self,
        db: Session,
        email: str,
        display_name: str | None,
        provider: str,
    ) -> User:
        """Return the user owning ``email``, creating a federated-only one if needed.

        Two concurrent first logins for the same email are tolerated: the loser
        of the insert race re-reads and returns the winner's row.

        Raises:
            InvalidInput: Empty email or unsupported provider.
            ConflictRetryExhausted: No free username could be found.
            StorageUnavailable: The user table could not be read or written.
        """
        email = normalise_email(email)
        provider = (provider or "").strip().lower()
        if provider not in PROVIDER_PREFIXES:
            raise InvalidInput(f"Unsupported identity provider: {provider!r}")

        try:
            existing = user_store.get_by_email(db, email)
            if existing is not None:
                db.commit()
                return existing

            base = self.candidate_username(email, display_name, provider)
            for candidate in self._candidates(base):
                if user_store.exists_by_username(db, candidate):
                    continue
                try:
                    with db.begin_nested():
                        user = user_store.insert_user(db, candidate, email, password_hash="")
                except IntegrityError:
                    winner = user_store.get_by_email(db, email)
                    if winner is not None:
                        db.commit()
                        return winner
                    logger.debug("Username %s was claimed concurrently; retrying", candidate)
                    continue
                db.commit()
                logger.info("Created federated %s account %s", provider, user.username)
                return user
        except SQLAlchemyError as err:
            db.rollback()
            raise StorageUnavailable("Could not resolve federated identity") from err

        db.rollback()
        raise ConflictRetryExhausted(f"No free username derived from {base!r}")
