"""Membership API endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from premium.core.auth import get_current_user_id
from premium.core.database import get_db
from premium.core.errors import PersistenceError
from premium.models.membership import MembershipTier
from premium.models.shared import as_utc
from premium.repositories.membership_repository import MembershipRepository
from premium.schemas.membership import MembershipResponse

router = APIRouter()


@router.get("/me", response_model=MembershipResponse)
async def get_my_membership(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MembershipResponse:
    """Return the signed-in member's effective tier.

    An expired premium row reads as basic even before the sweep rewrites it.
    """
    try:
        membership = MembershipRepository(db).get(user_id)
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Membership store unavailable") from None

    if membership is None:
        return MembershipResponse(user_id=user_id, tier=MembershipTier.BASIC.value, is_premium=False)

    tier = membership.effective_tier()
    return MembershipResponse(
        user_id=user_id,
        tier=tier.value,
        premium_expires_at=as_utc(membership.premium_expires_at),  # type: ignore[arg-type]
        is_premium=tier is MembershipTier.PREMIUM,
    )
