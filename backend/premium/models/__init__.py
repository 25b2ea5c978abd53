from premium.models.membership import Membership, MembershipTier
from premium.models.payment_transaction import PaymentTransaction, TransactionStatus
from premium.models.user import User

__all__ = [
    "Membership",
    "MembershipTier",
    "PaymentTransaction",
    "TransactionStatus",
    "User",
]
