"""Payment transaction repository for data access."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from premium.core.errors import PersistenceError
from premium.models.payment_transaction import PaymentTransaction, TransactionStatus


class PaymentTransactionRepository:
    """Repository for PaymentTransaction model.

    Store failures surface as ``PersistenceError``; writes roll back first.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_reference(self, reference: str) -> PaymentTransaction | None:
        try:
            return (
                self.db.query(PaymentTransaction)
                .filter(PaymentTransaction.reference == reference)
                .first()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load payment {reference}: {e}") from e

    def list_for_user(
        self, user_id: str, skip: int = 0, limit: int = 100
    ) -> list[PaymentTransaction]:
        try:
            return (
                self.db.query(PaymentTransaction)
                .filter(PaymentTransaction.user_id == user_id)
                .order_by(PaymentTransaction.created_at.desc())
                .offset(skip)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not list payments for {user_id}: {e}") from e

    def list_pending_before(self, cutoff: datetime, limit: int = 100) -> list[PaymentTransaction]:
        """Pending attempts created before ``cutoff``, oldest first."""
        try:
            return (
                self.db.query(PaymentTransaction)
                .filter(
                    PaymentTransaction.status == TransactionStatus.PENDING.value,
                    PaymentTransaction.created_at < cutoff,
                )
                .order_by(PaymentTransaction.created_at.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not list pending payments: {e}") from e

    def create(
        self,
        reference: str,
        user_id: str,
        email: str,
        amount_minor_units: int,
        currency: str,
        plan_tier: str,
        billing_period: str,
    ) -> PaymentTransaction:
        """Create a pending attempt. Raises IntegrityError on a duplicate reference."""
        transaction = PaymentTransaction(
            reference=reference,
            user_id=user_id,
            email=email,
            amount_minor_units=amount_minor_units,
            currency=currency,
            plan_tier=plan_tier,
            billing_period=billing_period,
            status=TransactionStatus.PENDING.value,
            provider_metadata={},
        )
        try:
            self.db.add(transaction)
            self.db.commit()
            self.db.refresh(transaction)
        except IntegrityError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Could not record payment attempt {reference}: {e}") from e
        return transaction

    def _update_and_commit(self, reference: str, values: dict[Any, Any], *criteria: Any) -> None:
        try:
            self.db.query(PaymentTransaction).filter(
                PaymentTransaction.reference == reference, *criteria
            ).update(values, synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Could not update payment {reference}: {e}") from e

    def set_authorization_url(self, reference: str, authorization_url: str) -> None:
        self._update_and_commit(
            reference, {PaymentTransaction.authorization_url: authorization_url}
        )

    def record_verify_attempt(self, reference: str) -> None:
        self._update_and_commit(
            reference,
            {PaymentTransaction.verify_attempts: PaymentTransaction.verify_attempts + 1},
        )

    def complete_once(
        self,
        reference: str,
        provider_transaction_id: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Idempotent completion; returns True only for the call that completed it.

        Does not commit, so the caller can make the membership upgrade part of
        the same transaction.
        """
        try:
            rowcount = (
                self.db.query(PaymentTransaction)
                .filter(
                    PaymentTransaction.reference == reference,
                    PaymentTransaction.status != TransactionStatus.SUCCESS.value,
                )
                .update(
                    {
                        PaymentTransaction.status: TransactionStatus.SUCCESS.value,
                        PaymentTransaction.provider_transaction_id: provider_transaction_id,
                        PaymentTransaction.provider_metadata: metadata or {},
                        PaymentTransaction.failure_reason: None,
                        PaymentTransaction.verified_at: datetime.now(UTC),
                    },
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Could not complete payment {reference}: {e}") from e
        return rowcount == 1

    def mark_failed(self, reference: str, reason: str | None = None) -> None:
        """Mark an attempt failed unless it already succeeded."""
        self._update_and_commit(
            reference,
            {
                PaymentTransaction.status: TransactionStatus.FAILED.value,
                PaymentTransaction.failure_reason: reason,
            },
            PaymentTransaction.status != TransactionStatus.SUCCESS.value,
        )
