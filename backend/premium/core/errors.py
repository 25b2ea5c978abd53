"""Error taxonomy for the premium payment flow.

Routers translate these into HTTP responses; services raise them and never
swallow them.
"""


class PaymentError(RuntimeError):
    """Base class for payment flow failures."""


class ValidationError(PaymentError):
    """Caller input is missing or malformed. No network call was attempted."""


class GatewayTimeout(PaymentError):
    """A provider call exceeded its timeout."""


class GatewayError(PaymentError):
    """The provider returned a non-success status or an unusable body."""

    def __init__(self, status_code: int | None, status_text: str):
        self.status_code = status_code
        self.status_text = status_text
        super().__init__(f"Paystack API error: {status_code} {status_text}")


class VerificationFailed(PaymentError):
    """The provider confirmed the transaction did not succeed."""


class SignatureInvalid(PaymentError):
    """A webhook failed HMAC authentication."""


class PersistenceError(PaymentError):
    """The subscription store could not be read or written."""
