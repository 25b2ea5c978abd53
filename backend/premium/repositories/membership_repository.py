"""Membership repository: the only writer of subscription state."""

import logging
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from premium.core.errors import PersistenceError
from premium.models.membership import Membership, MembershipTier

logger = logging.getLogger(__name__)


class MembershipRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Membership | None:
        try:
            return self.db.query(Membership).filter(Membership.user_id == user_id).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load membership for {user_id}: {e}") from e

    def get_or_create(self, user_id: str) -> Membership:
        """Load the member's row, creating a basic one on first use.

        Commits on its own, so call it before starting other work that must
        share a transaction with ``extend_from``.
        """
        membership = self.get(user_id)
        if membership is not None:
            return membership
        try:
            self.db.add(Membership(user_id=user_id, tier=MembershipTier.BASIC.value))
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info("Membership for %s created concurrently", user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Could not create membership for {user_id}: {e}") from e

        membership = self.get(user_id)
        if membership is None:
            raise PersistenceError(f"Could not create membership for {user_id}")
        return membership

    def upgrade(self, user_id: str, new_expiry: datetime) -> Membership:
        """Grant premium until ``new_expiry`` without ever shortening access.

        The write is a single conditional UPDATE that only applies when the
        stored expiry is missing or earlier, so replays and concurrent
        activations cannot move the expiry backwards. A missing row is
        inserted; callers with other uncommitted work should use
        ``get_or_create`` first so an insert race cannot roll that work back.
        """
        try:
            if not self._extend(user_id, new_expiry) and self.get(user_id) is None:
                self.db.add(
                    Membership(
                        user_id=user_id,
                        tier=MembershipTier.PREMIUM.value,
                        premium_expires_at=new_expiry,
                    )
                )
                self.db.flush()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Could not upgrade membership for {user_id}: {e}") from e

        membership = self.get(user_id)
        if membership is None:  # pragma: no cover - deleted concurrently
            raise PersistenceError(f"Membership for {user_id} vanished after upgrade")
        return membership

    def extend_from(
        self, user_id: str, expected_expiry: datetime | None, new_expiry: datetime
    ) -> Membership | None:
        """Set premium until ``new_expiry`` only if the stored expiry is still
        ``expected_expiry``.

        Commits together with any pending work in the session. Returns None
        when the row changed since it was read; the whole transaction,
        including the caller's pending work, is rolled back so the caller can
        re-read and try again.
        """
        if expected_expiry is None:
            unchanged = Membership.premium_expires_at.is_(None)
        else:
            unchanged = Membership.premium_expires_at == expected_expiry
        try:
            rowcount = (
                self.db.query(Membership)
                .filter(Membership.user_id == user_id, unchanged)
                .update(
                    {
                        Membership.tier: MembershipTier.PREMIUM.value,
                        Membership.premium_expires_at: new_expiry,
                    },
                    synchronize_session=False,
                )
            )
            if rowcount != 1:
                self.db.rollback()
                return None
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Could not extend membership for {user_id}: {e}") from e
        return self.get(user_id)

    def _extend(self, user_id: str, new_expiry: datetime) -> bool:
        rowcount = (
            self.db.query(Membership)
            .filter(
                Membership.user_id == user_id,
                or_(
                    Membership.premium_expires_at.is_(None),
                    Membership.premium_expires_at < new_expiry,
                ),
            )
            .update(
                {
                    Membership.tier: MembershipTier.PREMIUM.value,
                    Membership.premium_expires_at: new_expiry,
                },
                synchronize_session=False,
            )
        )
        return bool(rowcount)

    def expire_lapsed(self, now: datetime) -> int:
        """Rewrite premium rows whose expiry has passed to basic."""
        try:
            count = (
                self.db.query(Membership)
                .filter(
                    Membership.tier == MembershipTier.PREMIUM.value,
                    Membership.premium_expires_at.isnot(None),
                    Membership.premium_expires_at <= now,
                )
                .update(
                    {Membership.tier: MembershipTier.BASIC.value},
                    synchronize_session=False,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Could not expire memberships: {e}") from e
        return int(count)
