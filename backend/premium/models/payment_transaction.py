"""Ledger of payment attempts made through the provider."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, func

from premium.core.database import Base
from premium.models.shared import UUIDType, generate_uuid


class TransactionStatus(str, Enum):
    """Status of a payment attempt, as confirmed by the provider."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class PaymentTransaction(Base):
    """One initialize attempt, keyed by its unique reference."""

    __tablename__ = "payment_transactions"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    reference = Column(String(255), unique=True, index=True, nullable=False)
    user_id = Column(
        String(255), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    email = Column(String(255), nullable=False)

    amount_minor_units = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")
    plan_tier = Column(String(20), nullable=False, default="premium")
    billing_period = Column(String(20), nullable=False, default="monthly")
    status = Column(
        String(20), nullable=False, default=TransactionStatus.PENDING.value, index=True
    )

    # Provider info
    provider_transaction_id = Column(String(255), nullable=True)
    authorization_url = Column(Text, nullable=True)
    failure_reason = Column(Text, nullable=True)
    verify_attempts = Column(Integer, nullable=False, default=0)
    provider_metadata = Column(JSON, nullable=True, default=dict)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    verified_at = Column(DateTime(timezone=True), nullable=True)
