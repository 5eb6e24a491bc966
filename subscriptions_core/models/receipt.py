"""Receipt and issuance models.

A receipt item is a single payment reported by a processor. Receipt credentials
are issued against receipt items and every issuance is recorded so a payment
can never be redeemed for two different credential requests.
"""

import hashlib
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .subscriber import PaymentProvider


class ReceiptItem(BaseModel):
    """A receipt of payment from a payment processor."""

    model_config = ConfigDict(frozen=True)

    item_id: str = Field(..., description="Payment id, unique within the processor")
    paid_at: datetime = Field(..., description="When this payment was made")
    level: int = Field(..., ge=0, description="Subscription level the payment corresponds to")


class LevelAndCurrency(BaseModel):
    """Subscription level and lowercase ISO 4217 currency code."""

    model_config = ConfigDict(frozen=True)

    level: int = Field(..., ge=0)
    currency: str

    @field_validator("currency")
    @classmethod
    def _lowercase_currency(cls, value: str) -> str:
        return value.lower()


class SubscriptionId(BaseModel):
    """Identifier of a subscription created or updated in a processor."""

    model_config = ConfigDict(frozen=True)

    id: str


class IssuanceRecord(BaseModel):
    """Ledger entry for a receipt item that was exchanged for a credential."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    processor: PaymentProvider
    request_fingerprint: bytes = Field(..., description="SHA-256 of the serialized credential request")
    issued_at: datetime


class IssuanceOutcome(BaseModel):
    """Result of a conditional ledger insert.

    ``recorded`` is False when an entry already existed; ``record`` is then the
    existing entry, left unchanged.
    """

    recorded: bool
    record: IssuanceRecord


class GetReceiptCredentialsRequest(BaseModel):
    """Inbound request for a receipt credential."""

    receipt_credential_request: bytes = Field(..., description="Serialized blinded credential request")


class ReceiptCredentialRequest(BaseModel):
    """Decoded blinded receipt credential request."""

    model_config = ConfigDict(frozen=True)

    version: int
    blinded_nonce: bytes

    def serialize(self) -> bytes:
        return bytes([self.version]) + self.blinded_nonce

    def fingerprint(self) -> bytes:
        return hashlib.sha256(self.serialize()).digest()


class ReceiptCredentialResponse(BaseModel):
    """Signed receipt credential returned to the client."""

    model_config = ConfigDict(frozen=True)

    receipt_expiration_time: int = Field(..., description="Expiration (epoch seconds)")
    receipt_level: int
    payload: bytes
    signature: bytes

    def serialize(self) -> bytes:
        return self.payload + self.signature


class ReceiptResult(BaseModel):
    """Receipt credential together with the payment it was issued for."""

    model_config = ConfigDict(frozen=True)

    receipt_credential_response: ReceiptCredentialResponse
    receipt_item: ReceiptItem
    payment_provider: PaymentProvider
