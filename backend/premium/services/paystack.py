"""Paystack payment gateway client.

Paystack uses a redirect checkout flow:
1. Initialize a transaction via /transaction/initialize
2. Customer pays on the Paystack-hosted authorization URL
3. The transaction is confirmed via /transaction/verify/{reference}
4. Paystack also sends signed webhooks (HMAC-SHA512 of the raw body)
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from premium.core.config import Settings
from premium.core.errors import GatewayError, GatewayTimeout
from premium.schemas.paystack import PaystackInitializeResponse, PaystackVerifyResponse

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Paystack-Signature"


class ProviderStatus(str, Enum):
    """Transaction status as far as activation is concerned."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


# Paystack statuses that are final but not successful
_FAILED_STATUSES = {"failed", "abandoned", "reversed"}


def normalize_status(raw_status: str) -> ProviderStatus:
    """Map a Paystack transaction status onto pending/success/failed."""
    value = raw_status.lower()
    if value == "success":
        return ProviderStatus.SUCCESS
    if value in _FAILED_STATUSES:
        return ProviderStatus.FAILED
    return ProviderStatus.PENDING


@dataclass(frozen=True)
class TransactionMetadata:
    subject_id: str
    plan_tier: str = "premium"
    billing_period: str = "monthly"

    def to_wire(self) -> dict[str, str]:
        return {
            "userId": self.subject_id,
            "subscriptionType": self.plan_tier,
            "plan": self.billing_period,
        }


@dataclass(frozen=True)
class TransactionRequest:
    """Body of an initialize call. Built once, never mutated."""

    payer_email: str
    amount_minor_units: int
    reference: str
    metadata: TransactionMetadata
    currency: str | None = None
    callback_url: str | None = None

    def to_wire(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "email": self.payer_email,
            "amount": self.amount_minor_units,
            "reference": self.reference,
            "metadata": self.metadata.to_wire(),
        }
        if self.currency:
            body["currency"] = self.currency
        if self.callback_url:
            body["callback_url"] = self.callback_url
        return body


@dataclass
class InitializeResult:
    """Result of starting a transaction with the provider."""

    authorization_url: str
    reference: str
    access_code: str | None = None


@dataclass
class TransactionResult:
    """Transaction state reported by the provider's verify endpoint."""

    success: bool
    provider_transaction_id: str
    status: ProviderStatus
    raw_status: str
    amount_minor_units: int
    reference: str
    currency: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def subject_id(self) -> str | None:
        return self.metadata.get("userId")


def verify_signature(
    raw_payload: bytes, provided_signature: str | None, shared_secret: str
) -> bool:
    """Verify a Paystack webhook signature.

    Paystack signs the exact request body with HMAC-SHA512 keyed by the
    secret key and sends the hex digest. Any difference in the bytes, a
    missing header or a missing secret yields False.
    """
    if not shared_secret or not provided_signature:
        return False

    expected = hmac.new(shared_secret.encode(), raw_payload, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected.encode(), provided_signature.encode())


class PaystackClient:
    """HTTP client for the Paystack transaction API.

    Built once at startup and shared by request handlers. Each call is
    bounded by its own timeout and is never retried here.
    """

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paystack.co",
        initialize_timeout: float = 4.0,
        verify_timeout: float = 3.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.initialize_timeout = initialize_timeout
        self.verify_timeout = verify_timeout
        self._http = httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaystackClient":
        return cls(
            secret_key=settings.paystack_secret_key,
            base_url=settings.paystack_base_url,
            initialize_timeout=settings.paystack_initialize_timeout,
            verify_timeout=settings.paystack_verify_timeout,
        )

    def close(self) -> None:
        self._http.close()

    def verify_webhook_signature(self, payload: bytes, signature: str | None) -> bool:
        return verify_signature(payload, signature, self.secret_key)

    def _make_request(
        self,
        method: str,
        path: str,
        timeout: float,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an HTTP request to the Paystack API and return the JSON body."""
        try:
            response = self._http.request(method, path, json=data, timeout=timeout)
        except httpx.TimeoutException as e:
            logger.warning("Paystack %s %s timed out after %.1fs", method, path, timeout)
            raise GatewayTimeout(f"Paystack {method} {path} timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning("Paystack %s %s failed: %s", method, path, e)
            raise GatewayError(None, f"Request failed: {e}") from e

        if not response.is_success:
            logger.warning(
                "Paystack %s %s returned %d %s",
                method,
                path,
                response.status_code,
                response.reason_phrase,
            )
            raise GatewayError(response.status_code, response.reason_phrase)

        try:
            body = response.json()
        except ValueError as e:
            raise GatewayError(response.status_code, "Malformed JSON body") from e
        if not isinstance(body, dict):
            raise GatewayError(response.status_code, "Unexpected response body")
        return body

    def initialize(
        self, request: TransactionRequest, timeout: float | None = None
    ) -> InitializeResult:
        """Start a transaction and return the checkout URL."""
        body = self._make_request(
            "POST",
            "/transaction/initialize",
            self.initialize_timeout if timeout is None else timeout,
            request.to_wire(),
        )
        try:
            parsed = PaystackInitializeResponse.model_validate(body)
        except PydanticValidationError as e:
            raise GatewayError(200, f"Malformed initialize response: {e.error_count()} error(s)") from e

        if not parsed.status or parsed.data is None:
            raise GatewayError(200, parsed.message or "Payment initialization failed")

        return InitializeResult(
            authorization_url=parsed.data.authorization_url,
            reference=parsed.data.reference,
            access_code=parsed.data.access_code,
        )

    def verify(self, reference: str, timeout: float | None = None) -> TransactionResult:
        """Fetch the provider's view of a transaction."""
        body = self._make_request(
            "GET",
            f"/transaction/verify/{quote(reference, safe='')}",
            self.verify_timeout if timeout is None else timeout,
        )
        try:
            parsed = PaystackVerifyResponse.model_validate(body)
        except PydanticValidationError as e:
            raise GatewayError(200, f"Malformed verify response: {e.error_count()} error(s)") from e

        if not parsed.status or parsed.data is None:
            raise GatewayError(200, parsed.message or "Transaction verification failed")

        data = parsed.data
        status = normalize_status(data.status)
        metadata = data.metadata.model_dump(by_alias=True, exclude_none=True) if data.metadata else {}
        return TransactionResult(
            success=status is ProviderStatus.SUCCESS,
            provider_transaction_id=str(data.id),
            status=status,
            raw_status=data.status,
            amount_minor_units=data.amount,
            reference=data.reference,
            currency=data.currency,
            metadata=metadata,
        )
