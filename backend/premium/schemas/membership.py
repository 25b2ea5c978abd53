"""Membership schemas."""

from datetime import datetime

from pydantic import BaseModel


class MembershipResponse(BaseModel):
    """Schema for a member's effective subscription state."""

    user_id: str
    tier: str
    premium_expires_at: datetime | None = None
    is_premium: bool
