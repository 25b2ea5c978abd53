from premium.schemas.membership import MembershipResponse
from premium.schemas.payment import (
    InitializePaymentResponse,
    PaymentTransactionResponse,
    PremiumPlanResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookAck,
)

__all__ = [
    "InitializePaymentResponse",
    "MembershipResponse",
    "PaymentTransactionResponse",
    "PremiumPlanResponse",
    "VerifyPaymentRequest",
    "VerifyPaymentResponse",
    "WebhookAck",
]
