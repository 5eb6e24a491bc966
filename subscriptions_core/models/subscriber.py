"""Subscriber identity and record models.

A subscriber is an anonymous identity (random bytes chosen by the client) plus
an authentication tag derived upstream. The record links that identity to a
payment processor customer and to at most one active recurring subscription.
"""

from datetime import datetime
from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentProvider(IntEnum):
    """Payment processors a subscriber can be attached to."""

    STRIPE = 1
    BRAINTREE = 2
    GOOGLE_PLAY_BILLING = 3
    APPLE_APP_STORE = 4


class ClientPlatform(str, Enum):
    """Platform of the client that initiated a request."""

    ANDROID = "android"
    IOS = "ios"
    DESKTOP = "desktop"


class GetResultType(IntEnum):
    """Outcome of a credential-checked subscriber lookup."""

    FOUND = 0
    NOT_STORED = 1  # No record for this identity
    PASSWORD_MISMATCH = 2  # Record exists but the tag does not match


class SubscriberCredentials(BaseModel):
    """Per-request subscriber credentials, already authenticated upstream."""

    model_config = ConfigDict(frozen=True)

    subscriber_user: bytes = Field(..., description="Subscriber identity bytes")
    hmac: bytes = Field(..., description="Authentication tag derived from the subscriber secret")
    now: datetime = Field(..., description="Request time")


class ProcessorCustomer(BaseModel):
    """Customer identity within a payment processor."""

    model_config = ConfigDict(frozen=True)

    customer_id: str = Field(..., description="Customer id assigned by the processor")
    processor: PaymentProvider = Field(..., description="Processor that owns the customer")


class SubscriberRecord(BaseModel):
    """Stored subscriber state."""

    user: bytes = Field(..., description="Subscriber identity (primary key)")
    password: bytes = Field(..., description="Authentication tag")
    created_at: datetime
    accessed_at: datetime
    canceled_at: Optional[datetime] = None

    processor_customer: Optional[ProcessorCustomer] = None
    processor_customer_updated_at: Optional[datetime] = None

    # Set together or both None
    subscription_id: Optional[str] = None
    subscription_level: Optional[int] = None
    subscription_created_at: Optional[datetime] = None
    subscription_level_changed_at: Optional[datetime] = None

    @property
    def is_canceled(self) -> bool:
        return self.canceled_at is not None


class GetResult(BaseModel):
    """Typed outcome of ``SubscriberStore.get``."""

    type: GetResultType
    record: Optional[SubscriberRecord] = None

    @classmethod
    def found(cls, record: SubscriberRecord) -> "GetResult":
        return cls(type=GetResultType.FOUND, record=record)

    @classmethod
    def not_stored(cls) -> "GetResult":
        return cls(type=GetResultType.NOT_STORED)

    @classmethod
    def password_mismatch(cls) -> "GetResult":
        return cls(type=GetResultType.PASSWORD_MISMATCH)
