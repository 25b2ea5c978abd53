"""Paystack wire payloads.

Every body received from Paystack is parsed into one of these models before
any business logic reads it. Unknown fields are ignored; missing required
fields fail validation.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PaystackMetadata(BaseModel):
    """Metadata we attach on initialize and read back on verify."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")
    subscription_type: str | None = Field(default=None, alias="subscriptionType")
    plan: str | None = None

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id_as_string(cls, value: Any) -> Any:
        # Metadata set by other integrations may carry a numeric id
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class PaystackInitializeData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    authorization_url: str = Field(..., min_length=1)
    access_code: str | None = None
    reference: str = Field(..., min_length=1)


class PaystackInitializeResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: bool
    message: str = ""
    data: PaystackInitializeData | None = None


class PaystackCustomer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    email: str | None = None
    customer_code: str | None = None


class PaystackVerifyData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str
    status: str
    reference: str
    amount: int
    currency: str | None = None
    customer: PaystackCustomer | None = None
    metadata: PaystackMetadata | None = None

    @field_validator("metadata", mode="before")
    @classmethod
    def _empty_metadata(cls, value: Any) -> Any:
        # Paystack sends "" or 0 when a transaction carries no metadata
        if not value or not isinstance(value, dict):
            return None
        return value


class PaystackVerifyResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: bool
    message: str = ""
    data: PaystackVerifyData | None = None


class PaystackWebhookData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    reference: str | None = None
    status: str | None = None


class PaystackWebhookEvent(BaseModel):
    """Envelope of a webhook delivery (e.g. ``charge.success``)."""

    model_config = ConfigDict(extra="ignore")

    event: str
    data: PaystackWebhookData = Field(default_factory=PaystackWebhookData)
