"""Pydantic models for subscribers, receipts, and configuration."""

# Configuration models
from .configuration import (
    CurrencyPrice,
    EmulatorConfig,
    LevelType,
    SubscriptionLevel,
    SubscriptionsConfig,
)

# Subscriber models
from .subscriber import (
    ClientPlatform,
    GetResult,
    GetResultType,
    PaymentProvider,
    ProcessorCustomer,
    SubscriberCredentials,
    SubscriberRecord,
)

# Receipt and issuance models
from .receipt import (
    GetReceiptCredentialsRequest,
    IssuanceOutcome,
    IssuanceRecord,
    LevelAndCurrency,
    ReceiptCredentialRequest,
    ReceiptCredentialResponse,
    ReceiptItem,
    ReceiptResult,
    SubscriptionId,
)

__all__ = [
    # Configuration
    "CurrencyPrice",
    "EmulatorConfig",
    "LevelType",
    "SubscriptionLevel",
    "SubscriptionsConfig",
    # Subscriber
    "ClientPlatform",
    "GetResult",
    "GetResultType",
    "PaymentProvider",
    "ProcessorCustomer",
    "SubscriberCredentials",
    "SubscriberRecord",
    # Receipts
    "GetReceiptCredentialsRequest",
    "IssuanceOutcome",
    "IssuanceRecord",
    "LevelAndCurrency",
    "ReceiptCredentialRequest",
    "ReceiptCredentialResponse",
    "ReceiptItem",
    "ReceiptResult",
    "SubscriptionId",
]
