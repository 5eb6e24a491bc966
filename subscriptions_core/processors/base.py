"""Payment processor adapter contracts.

``PaymentProcessor`` is what every provider supports: resolving the payment
behind a subscription and canceling a customer's subscriptions.
``SubscriptionPaymentProcessor`` adds server-managed customers and
subscriptions, which only some providers (Stripe-like ones) have.

Provider failures are reported as ``ProcessorError`` carrying a
provider-defined reason ``code``; callers match on the code.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from subscriptions_core.models import (
    ClientPlatform,
    LevelAndCurrency,
    PaymentProvider,
    ProcessorCustomer,
    ReceiptItem,
    SubscriptionId,
)

# Reason codes shared by all adapters
PAYMENT_REQUIRES_ACTION = "subscription_payment_intent_requires_action"
RESOURCE_MISSING = "resource_missing"
SUBSCRIPTION_NOT_ACTIVE = "subscription_not_active"
INVALID_TEMPLATE = "invalid_template"
IDEMPOTENCY_KEY_IN_USE = "idempotency_key_in_use"


class ProcessorError(Exception):
    """Failure reported by a payment processor."""

    def __init__(self, provider: PaymentProvider, code: str, message: Optional[str] = None):
        super().__init__(f"{provider.name}: {code}" + (f" ({message})" if message else ""))
        self.provider = provider
        self.code = code
        self.message = message


class PaymentProcessor(ABC):
    """Operations every payment provider supports."""

    @property
    @abstractmethod
    def provider(self) -> PaymentProvider:
        """Provider this adapter talks to."""

    @abstractmethod
    async def get_receipt_item(self, subscription_id: str) -> ReceiptItem:
        """Retrieve the latest payment for a subscription.

        The returned item must identify an individual charge, not the
        subscription as a whole, and the same item id is returned for every
        call within one billing cycle.
        """

    @abstractmethod
    async def cancel_all_active_subscriptions(self, customer_id: str) -> None:
        """Cancel every active subscription of a customer.

        Raises:
            ProcessorError: with code ``RESOURCE_MISSING`` if the customer
                does not exist in the processor
        """


class SubscriptionPaymentProcessor(PaymentProcessor):
    """Payment provider with server-managed customers and subscriptions."""

    @abstractmethod
    async def create_customer(self, subscriber_user: bytes, client_platform: ClientPlatform) -> ProcessorCustomer:
        """Create a customer for the subscriber."""

    @abstractmethod
    async def get_subscription(self, subscription_id: str) -> Any:
        """Fetch a subscription; the returned object is provider specific."""

    @abstractmethod
    async def create_subscription(
        self,
        customer_id: str,
        template_id: str,
        level: int,
        last_subscription_created_at: int,
    ) -> SubscriptionId:
        """Create a subscription.

        Args:
            customer_id: Processor customer
            template_id: Processor product/price for the level
            level: Subscription level
            last_subscription_created_at: Epoch seconds of the subscriber's
                previous subscription creation (0 if none); repeated calls with
                the same value must not create a second subscription
        """

    @abstractmethod
    async def update_subscription(
        self,
        subscription: Any,
        template_id: str,
        level: int,
        idempotency_key: str,
    ) -> SubscriptionId:
        """Move a subscription to a new level, deduplicated by ``idempotency_key``.

        A key is bound to the subscription, template and level it was first
        used with; reusing it for anything else fails with
        ``IDEMPOTENCY_KEY_IN_USE``.
        """

    @abstractmethod
    async def get_level_and_currency_for_subscription(self, subscription: Any) -> LevelAndCurrency:
        """Current level and currency of a subscription."""
