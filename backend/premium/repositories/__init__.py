from premium.repositories.membership_repository import MembershipRepository
from premium.repositories.payment_transaction_repository import PaymentTransactionRepository
from premium.repositories.user_repository import UserRepository

__all__ = [
    "MembershipRepository",
    "PaymentTransactionRepository",
    "UserRepository",
]
