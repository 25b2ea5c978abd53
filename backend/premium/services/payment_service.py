"""Premium upgrade orchestration.

Sequences reference generation, provider initialize, provider verify and
membership activation. A payment is only ever activated from the result of
our own verify call, never from a client claim or webhook body.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from premium.core.config import Settings
from premium.core.config import settings as default_settings
from premium.core.errors import (
    GatewayError,
    GatewayTimeout,
    PersistenceError,
    SignatureInvalid,
    ValidationError,
    VerificationFailed,
)
from premium.models.membership import Membership, MembershipTier
from premium.models.payment_transaction import PaymentTransaction, TransactionStatus
from premium.models.shared import as_utc, utc_now
from premium.repositories.membership_repository import MembershipRepository
from premium.repositories.payment_transaction_repository import PaymentTransactionRepository
from premium.repositories.user_repository import UserRepository
from premium.schemas.paystack import PaystackWebhookEvent
from premium.services.paystack import (
    InitializeResult,
    PaystackClient,
    ProviderStatus,
    TransactionMetadata,
    TransactionRequest,
    TransactionResult,
)
from premium.services.reference import generate_reference
from premium.services.subscription_dates import next_premium_expiry

logger = logging.getLogger(__name__)
reconciliation_logger = logging.getLogger("premium.reconciliation")

CHARGE_SUCCESS_EVENT = "charge.success"
_REFERENCE_ATTEMPTS = 3
_ACTIVATION_ATTEMPTS = 5


@dataclass
class VerificationOutcome:
    """Result of verifying one reference."""

    reference: str
    status: ProviderStatus
    activated: bool
    expires_at: datetime | None = None
    already_applied: bool = False


@dataclass
class WebhookOutcome:
    """Result of handling one webhook delivery."""

    event: str
    processed: bool
    reason: str | None = None
    verification: VerificationOutcome | None = None


class PaymentService:
    """Drives a premium upgrade from initialize through activation."""

    def __init__(
        self,
        db: Session,
        gateway: PaystackClient,
        settings: Settings | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.settings = settings or default_settings
        self.user_repo = UserRepository(db)
        self.transaction_repo = PaymentTransactionRepository(db)
        self.membership_repo = MembershipRepository(db)

    @property
    def billing_period(self) -> str:
        months = self.settings.premium_billing_months
        return "monthly" if months == 1 else f"{months}-monthly"

    def initialize_payment(self, user_id: str) -> InitializeResult:
        """Start a premium payment for a member and return the checkout URL.

        Every call issues a fresh reference; a failed attempt is recorded as
        failed and never re-sent with the same reference.
        """
        user = self.user_repo.get_by_id(user_id)
        if user is None or not user.email:
            raise ValidationError("User email not found")

        transaction = self._create_pending_transaction(user_id, str(user.email))
        request = TransactionRequest(
            payer_email=str(user.email),
            amount_minor_units=self.settings.premium_price_minor,
            reference=str(transaction.reference),
            metadata=TransactionMetadata(
                subject_id=user_id,
                plan_tier=MembershipTier.PREMIUM.value,
                billing_period=self.billing_period,
            ),
            currency=self.settings.payment_currency,
            callback_url=self.settings.paystack_callback_url or None,
        )

        try:
            result = self.gateway.initialize(request)
        except (GatewayError, GatewayTimeout) as e:
            self.transaction_repo.mark_failed(request.reference, f"initialize: {e}")
            raise

        self.transaction_repo.set_authorization_url(request.reference, result.authorization_url)
        logger.info("Initialized payment %s for user %s", request.reference, user_id)
        return result

    def _create_pending_transaction(self, user_id: str, email: str) -> PaymentTransaction:
        for _ in range(_REFERENCE_ATTEMPTS):
            reference = generate_reference(user_id, self.settings.payment_reference_prefix)
            try:
                return self.transaction_repo.create(
                    reference=reference,
                    user_id=user_id,
                    email=email,
                    amount_minor_units=self.settings.premium_price_minor,
                    currency=self.settings.payment_currency,
                    plan_tier=MembershipTier.PREMIUM.value,
                    billing_period=self.billing_period,
                )
            except IntegrityError:
                logger.warning("Reference collision for %s, regenerating", reference)
        raise PersistenceError("Could not allocate a unique payment reference")

    def verify_payment(self, reference: str | None, user_id: str | None = None) -> VerificationOutcome:
        """Confirm a payment with the provider and activate premium on success.

        Safe to repeat: a reference is applied to the membership at most once,
        and the membership expiry never moves backwards.
        """
        reference = (reference or "").strip()
        if not reference:
            raise ValidationError("Payment reference is required")

        transaction = self.transaction_repo.get_by_reference(reference)
        if transaction is not None:
            if user_id is not None and transaction.user_id != user_id:
                raise ValidationError("Payment reference does not belong to this user")
            self.transaction_repo.record_verify_attempt(reference)

        result = self.gateway.verify(reference)
        if result.reference != reference:
            raise GatewayError(200, "Verified reference does not match request")

        if transaction is None and user_id is not None and result.subject_id != user_id:
            raise ValidationError("Payment reference does not belong to this user")

        if result.status is ProviderStatus.SUCCESS:
            return self._activate(result, transaction)

        if result.status is ProviderStatus.FAILED and transaction is not None:
            self.transaction_repo.mark_failed(reference, f"Provider reported {result.raw_status}")
        logger.info("Payment %s not activated: provider status %s", reference, result.raw_status)
        return VerificationOutcome(reference=reference, status=result.status, activated=False)

    def _activate(
        self, result: TransactionResult, transaction: PaymentTransaction | None
    ) -> VerificationOutcome:
        reference = result.reference
        user_id = str(transaction.user_id) if transaction is not None else result.subject_id
        if not user_id:
            raise VerificationFailed(f"Payment {reference} has no member to activate")

        if transaction is not None:
            if transaction.status == TransactionStatus.SUCCESS.value:
                return self._already_applied(reference, user_id)
            if result.amount_minor_units < int(transaction.amount_minor_units):
                self.transaction_repo.mark_failed(
                    reference,
                    f"Amount {result.amount_minor_units} below {transaction.amount_minor_units}",
                )
                raise VerificationFailed(f"Payment {reference} amount does not cover the plan")

        try:
            membership = self._apply(reference, user_id, result, transaction)
        except PersistenceError:
            reconciliation_logger.error(
                "Payment collected but premium not activated: reference=%s user=%s "
                "provider_transaction_id=%s amount=%s",
                reference,
                user_id,
                result.provider_transaction_id,
                result.amount_minor_units,
            )
            raise

        if membership is None:
            return self._already_applied(reference, user_id)

        expires_at = as_utc(membership.premium_expires_at)  # type: ignore[arg-type]
        logger.info("Activated premium for user %s until %s (%s)", user_id, expires_at, reference)
        return VerificationOutcome(
            reference=reference,
            status=ProviderStatus.SUCCESS,
            activated=True,
            expires_at=expires_at,
        )

    def _apply(
        self,
        reference: str,
        user_id: str,
        result: TransactionResult,
        transaction: PaymentTransaction | None,
    ) -> Membership | None:
        """Write one billing period to the membership.

        Returns None if a concurrent verification already applied this
        reference.
        """
        months = self.settings.premium_billing_months
        if transaction is None:
            # No ledger row to guard against replays, so no stacking either
            new_expiry = next_premium_expiry(utc_now(), None, months)
            return self.membership_repo.upgrade(user_id, new_expiry)

        for _ in range(_ACTIVATION_ATTEMPTS):
            membership = self.membership_repo.get_or_create(user_id)
            read_expiry = membership.premium_expires_at
            now = utc_now()
            current_expiry = None
            if membership.effective_tier(now) is MembershipTier.PREMIUM:
                current_expiry = as_utc(read_expiry)  # type: ignore[arg-type]
            new_expiry = next_premium_expiry(now, current_expiry, months)

            if not self.transaction_repo.complete_once(
                reference,
                provider_transaction_id=result.provider_transaction_id,
                metadata=result.metadata,
            ):
                self.db.rollback()
                return None

            updated = self.membership_repo.extend_from(
                user_id, read_expiry, new_expiry  # type: ignore[arg-type]
            )
            if updated is not None:
                return updated
            logger.info(
                "Membership for %s changed while activating %s, retrying", user_id, reference
            )

        raise PersistenceError(
            f"Membership for {user_id} kept changing while activating {reference}"
        )

    def _already_applied(self, reference: str, user_id: str) -> VerificationOutcome:
        membership = self.membership_repo.get(user_id)
        expires_at = as_utc(membership.premium_expires_at) if membership else None  # type: ignore[arg-type]
        return VerificationOutcome(
            reference=reference,
            status=ProviderStatus.SUCCESS,
            activated=True,
            expires_at=expires_at,
            already_applied=True,
        )

    def handle_webhook(self, raw_body: bytes, signature: str | None) -> WebhookOutcome:
        """Authenticate a provider notification and act on successful charges.

        The body only tells us which reference to look at; activation goes
        through ``verify_payment`` so the provider is asked directly.
        """
        if not self.gateway.verify_webhook_signature(raw_body, signature):
            raise SignatureInvalid("Invalid signature")

        try:
            event = PaystackWebhookEvent.model_validate_json(raw_body)
        except PydanticValidationError as e:
            raise ValidationError("Invalid webhook payload") from e

        if event.event != CHARGE_SUCCESS_EVENT:
            return WebhookOutcome(event=event.event, processed=False, reason="event not handled")

        reference = event.data.reference
        if not reference:
            return WebhookOutcome(event=event.event, processed=False, reason="missing reference")

        if self.transaction_repo.get_by_reference(reference) is None:
            # Might be for a different system sharing the account
            return WebhookOutcome(event=event.event, processed=False, reason="unknown reference")

        outcome = self.verify_payment(reference)
        return WebhookOutcome(event=event.event, processed=True, verification=outcome)

    def reconcile_pending(self, older_than: timedelta, limit: int = 100) -> int:
        """Re-verify stale pending attempts and return how many were activated."""
        cutoff = utc_now() - older_than
        activated = 0
        for transaction in self.transaction_repo.list_pending_before(cutoff, limit=limit):
            reference = str(transaction.reference)
            try:
                outcome = self.verify_payment(reference)
            except (GatewayError, GatewayTimeout, VerificationFailed, PersistenceError) as e:
                logger.warning("Reconciliation of %s skipped: %s", reference, e)
                continue
            if outcome.activated and not outcome.already_applied:
                activated += 1
        return activated
