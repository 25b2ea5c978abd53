"""Membership model holding a member's subscription tier."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, func

from premium.core.database import Base
from premium.models.shared import as_utc, utc_now


class MembershipTier(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"


class Membership(Base):
    """Subscription state for one member.

    The stored tier is only authoritative while premium_expires_at is in the
    future; use ``effective_tier`` when deciding access.
    """

    __tablename__ = "memberships"

    user_id = Column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tier = Column(String(20), nullable=False, default=MembershipTier.BASIC.value)
    premium_expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def effective_tier(self, now: datetime | None = None) -> MembershipTier:
        expires_at = as_utc(self.premium_expires_at)  # type: ignore[arg-type]
        if self.tier == MembershipTier.PREMIUM.value and expires_at is not None:
            if expires_at > (now or utc_now()):
                return MembershipTier.PREMIUM
        return MembershipTier.BASIC
