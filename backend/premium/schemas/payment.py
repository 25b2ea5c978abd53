"""Payment API schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PremiumPlanResponse(BaseModel):
    """Schema for the premium plan offered to members."""

    tier: str
    amount_minor_units: int
    currency: str
    billing_period: str
    billing_months: int


class InitializePaymentResponse(BaseModel):
    """Schema for a started payment."""

    success: bool = True
    authorization_url: str
    reference: str


class VerifyPaymentRequest(BaseModel):
    """Schema for confirming a payment by reference."""

    reference: str = Field(default="", description="Reference returned by initialize")


class VerifyPaymentResponse(BaseModel):
    """Schema for the outcome of a verification."""

    success: bool
    activated: bool
    status: str
    message: str
    expires_at: datetime | None = None


class WebhookAck(BaseModel):
    """Schema for the acknowledgement returned to the provider."""

    status: str
    event: str | None = None
    reason: str | None = None


class PaymentTransactionResponse(BaseModel):
    """Schema for a payment attempt in the member's history."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reference: str
    amount_minor_units: int
    currency: str
    plan_tier: str
    billing_period: str
    status: str
    failure_reason: str | None = None
    created_at: datetime
    verified_at: datetime | None = None
