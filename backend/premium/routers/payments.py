"""Premium payment API endpoints."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from premium.core.auth import get_current_user_id
from premium.core.config import settings
from premium.core.database import get_db
from premium.core.errors import (
    GatewayError,
    GatewayTimeout,
    PersistenceError,
    SignatureInvalid,
    ValidationError,
    VerificationFailed,
)
from premium.core.rate_limiter import RateLimiter
from premium.models.membership import MembershipTier
from premium.models.payment_transaction import PaymentTransaction
from premium.repositories.payment_transaction_repository import PaymentTransactionRepository
from premium.schemas.payment import (
    InitializePaymentResponse,
    PaymentTransactionResponse,
    PremiumPlanResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookAck,
)
from premium.services.payment_service import PaymentService
from premium.services.paystack import SIGNATURE_HEADER, PaystackClient, ProviderStatus

logger = logging.getLogger(__name__)

INITIALIZE_FAILED_MESSAGE = "Could not start payment"
NOT_CONFIRMED_MESSAGE = "Payment not confirmed, try again or contact support"

router = APIRouter()

webhook_rate_limiter = RateLimiter(
    max_requests=settings.RATE_LIMIT_WEBHOOKS_PER_MINUTE,
    window_seconds=60,
)


def get_paystack_client(request: Request) -> PaystackClient:
    """Return the gateway client created at application startup."""
    client = getattr(request.app.state, "paystack", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Payment provider not configured")
    return client


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: PaystackClient = Depends(get_paystack_client),
) -> PaymentService:
    return PaymentService(db, gateway, settings)


def _check_webhook_rate_limit(request: Request) -> None:
    """Dependency that limits webhook deliveries per client address."""
    key = request.client.host if request.client else "anonymous"
    if not webhook_rate_limiter.is_allowed(key):
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(webhook_rate_limiter.retry_after(key))},
        )


@router.get("/plan", response_model=PremiumPlanResponse)
async def get_premium_plan() -> PremiumPlanResponse:
    """Describe the premium plan a member can buy."""
    months = settings.premium_billing_months
    return PremiumPlanResponse(
        tier=MembershipTier.PREMIUM.value,
        amount_minor_units=settings.premium_price_minor,
        currency=settings.payment_currency,
        billing_period="monthly" if months == 1 else f"{months}-monthly",
        billing_months=months,
    )


@router.post("/initialize", response_model=InitializePaymentResponse)
async def initialize_payment(
    user_id: str = Depends(get_current_user_id),
    service: PaymentService = Depends(get_payment_service),
) -> InitializePaymentResponse:
    """Start a premium payment and return the provider checkout URL."""
    try:
        result = await run_in_threadpool(service.initialize_payment, user_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except GatewayTimeout:
        raise HTTPException(status_code=504, detail=INITIALIZE_FAILED_MESSAGE) from None
    except GatewayError:
        raise HTTPException(status_code=502, detail=INITIALIZE_FAILED_MESSAGE) from None
    except PersistenceError:
        logger.exception("Could not record payment attempt for user %s", user_id)
        raise HTTPException(status_code=500, detail=INITIALIZE_FAILED_MESSAGE) from None

    return InitializePaymentResponse(
        authorization_url=result.authorization_url,
        reference=result.reference,
    )


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    data: VerifyPaymentRequest,
    user_id: str = Depends(get_current_user_id),
    service: PaymentService = Depends(get_payment_service),
) -> VerifyPaymentResponse:
    """Confirm a payment with the provider and activate premium on success."""
    try:
        outcome = await run_in_threadpool(service.verify_payment, data.reference, user_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except VerificationFailed:
        raise HTTPException(status_code=400, detail=NOT_CONFIRMED_MESSAGE) from None
    except GatewayTimeout:
        raise HTTPException(status_code=504, detail=NOT_CONFIRMED_MESSAGE) from None
    except GatewayError:
        raise HTTPException(status_code=502, detail=NOT_CONFIRMED_MESSAGE) from None
    except PersistenceError:
        raise HTTPException(
            status_code=500,
            detail="Payment could not be recorded, please contact support",
        ) from None

    if outcome.status is ProviderStatus.FAILED:
        raise HTTPException(status_code=400, detail=NOT_CONFIRMED_MESSAGE)

    return VerifyPaymentResponse(
        success=outcome.activated,
        activated=outcome.activated,
        status=outcome.status.value,
        message=(
            "Payment verified and premium activated" if outcome.activated else NOT_CONFIRMED_MESSAGE
        ),
        expires_at=outcome.expires_at,
    )


@router.post(
    "/webhook",
    response_model=WebhookAck,
    dependencies=[Depends(_check_webhook_rate_limit)],
)
async def handle_webhook(
    request: Request,
    signature: str | None = Header(None, alias=SIGNATURE_HEADER),
    service: PaymentService = Depends(get_payment_service),
) -> WebhookAck:
    """Handle Paystack webhooks.

    Any non-2xx answer makes Paystack redeliver the event later.
    """
    payload = await request.body()

    try:
        outcome = await run_in_threadpool(service.handle_webhook, payload, signature)
    except SignatureInvalid:
        raise HTTPException(status_code=401, detail="Invalid signature") from None
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except GatewayTimeout:
        raise HTTPException(status_code=504, detail="Payment provider timed out") from None
    except GatewayError:
        raise HTTPException(status_code=502, detail="Payment provider error") from None
    except VerificationFailed as e:
        # Redelivery cannot change the outcome
        logger.warning("Webhook payment rejected: %s", e)
        return WebhookAck(status="rejected", reason=str(e))
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Activation failed") from None

    if not outcome.processed:
        return WebhookAck(status="ignored", event=outcome.event, reason=outcome.reason)
    return WebhookAck(status="processed", event=outcome.event)


@router.get("/transactions", response_model=list[PaymentTransactionResponse])
async def list_transactions(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> list[PaymentTransaction]:
    """List the signed-in member's payment attempts, newest first."""
    repo = PaymentTransactionRepository(db)
    try:
        return repo.list_for_user(user_id, skip=skip, limit=limit)
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Payment history unavailable") from None
