"""Receipt credential issuance.

``ReceiptCredentialIssuer`` is the contract for the credential primitive: decode
a client's blinded request and sign it together with an expiration and level.
``Ed25519ReceiptIssuer`` implements it with plain Ed25519 signatures for local
development; it carries no zero-knowledge properties.
"""

from abc import ABC, abstractmethod
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from subscriptions_core.models import ReceiptCredentialRequest, ReceiptCredentialResponse

REQUEST_VERSION = 0
BLINDED_NONCE_LENGTH = 32
REQUEST_LENGTH = 1 + BLINDED_NONCE_LENGTH
# expiration and level are encoded as unsigned 64-bit big-endian integers
MAX_UINT64 = 2**64 - 1


class InvalidReceiptRequestError(Exception):
    """Raised when serialized credential request bytes cannot be decoded."""

    pass


class VerificationFailedError(Exception):
    """Raised when a credential request fails verification during signing."""

    pass


class ReceiptCredentialIssuer(ABC):
    """Contract for issuing receipt credentials."""

    @abstractmethod
    def decode_request(self, serialized: bytes) -> ReceiptCredentialRequest:
        """Decode a serialized request.

        Raises:
            InvalidReceiptRequestError: If the bytes are malformed
        """

    @abstractmethod
    def issue(
        self,
        request: ReceiptCredentialRequest,
        expiration: int,
        level: int,
    ) -> ReceiptCredentialResponse:
        """Sign a receipt credential.

        Args:
            request: Decoded credential request
            expiration: Credential expiration, epoch seconds
            level: Subscription level the credential attests to

        Raises:
            VerificationFailedError: If the request does not verify
        """


class Ed25519ReceiptIssuer(ReceiptCredentialIssuer):
    """Development issuer signing ``request || expiration || level`` with Ed25519."""

    def __init__(self, private_key: Optional[Ed25519PrivateKey] = None):
        self._private_key = private_key or Ed25519PrivateKey.generate()
        self._public_key: Ed25519PublicKey = self._private_key.public_key()

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)

    def decode_request(self, serialized: bytes) -> ReceiptCredentialRequest:
        if len(serialized) != REQUEST_LENGTH:
            raise InvalidReceiptRequestError(
                f"Expected {REQUEST_LENGTH} bytes, got {len(serialized)}"
            )
        if serialized[0] != REQUEST_VERSION:
            raise InvalidReceiptRequestError(f"Unsupported request version: {serialized[0]}")
        return ReceiptCredentialRequest(version=serialized[0], blinded_nonce=serialized[1:])

    def issue(
        self,
        request: ReceiptCredentialRequest,
        expiration: int,
        level: int,
    ) -> ReceiptCredentialResponse:
        if request.version != REQUEST_VERSION or len(request.blinded_nonce) != BLINDED_NONCE_LENGTH:
            raise VerificationFailedError("Malformed credential request")
        if not 0 < expiration <= MAX_UINT64:
            raise VerificationFailedError(f"Invalid expiration: {expiration}")
        if not 0 <= level <= MAX_UINT64:
            raise VerificationFailedError(f"Invalid level: {level}")

        payload = (
            request.serialize()
            + expiration.to_bytes(8, "big")
            + level.to_bytes(8, "big")
        )
        return ReceiptCredentialResponse(
            receipt_expiration_time=expiration,
            receipt_level=level,
            payload=payload,
            signature=self._private_key.sign(payload),
        )

    def verify(self, response: ReceiptCredentialResponse) -> bool:
        """Check a response was signed by this issuer."""
        try:
            self._public_key.verify(response.signature, response.payload)
            return True
        except InvalidSignature:
            return False
