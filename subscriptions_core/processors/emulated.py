"""In-memory payment processor for local development and tests.

Responsibilities:
- Create customers and subscriptions with generated ids
- Apply level changes, deduplicated by idempotency key
- Produce one receipt item per billing cycle
- Cancel a customer's active subscriptions
- Simulate customers whose payments need extra confirmation
"""

from datetime import datetime, timezone
from enum import IntEnum
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from subscriptions_core.config import Config, get_config
from subscriptions_core.logging_config import get_logger
from subscriptions_core.models import (
    ClientPlatform,
    LevelAndCurrency,
    PaymentProvider,
    ProcessorCustomer,
    ReceiptItem,
    SubscriptionId,
)
from subscriptions_core.processors.base import (
    IDEMPOTENCY_KEY_IN_USE,
    INVALID_TEMPLATE,
    PAYMENT_REQUIRES_ACTION,
    RESOURCE_MISSING,
    SUBSCRIPTION_NOT_ACTIVE,
    ProcessorError,
    SubscriptionPaymentProcessor,
)
from subscriptions_core.utils.billing_period import (
    billing_cycles_elapsed,
    billing_period_to_timedelta,
)
from subscriptions_core.utils.token_generator import (
    generate_customer_id,
    generate_item_id,
    generate_subscription_id,
)

logger = get_logger(__name__)


class EmulatedSubscriptionStatus(IntEnum):
    ACTIVE = 0
    CANCELED = 1


class EmulatedCustomer(BaseModel):
    customer_id: str
    subscriber_user: bytes
    client_platform: ClientPlatform
    requires_action: bool = False


class EmulatedSubscription(BaseModel):
    """Subscription as held by the emulated processor."""

    id: str
    customer_id: str
    template_id: str
    level: int
    currency: str
    status: EmulatedSubscriptionStatus = EmulatedSubscriptionStatus.ACTIVE
    created_at: datetime
    canceled_at: Optional[datetime] = None
    # Payment item id per billing cycle number (1-based)
    items: Dict[int, str] = Field(default_factory=dict)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EmulatedPaymentProcessor(SubscriptionPaymentProcessor):
    """Subscription payment processor emulated in memory.

    Template ids and their currencies come from the configured subscription
    levels; unknown template ids are rejected like a real processor would.
    """

    def __init__(
        self,
        provider: PaymentProvider = PaymentProvider.STRIPE,
        config: Optional[Config] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize emulated processor.

        Args:
            provider: Provider this emulator stands in for
            config: Configuration (defaults to global instance)
            clock: Source of the current time (defaults to wall clock UTC)
        """
        self._provider = provider
        self.config = config or get_config()
        self._clock = clock or _utc_now
        self._prefix = self.config.emulator_settings.id_prefix
        self._billing_period = self.config.emulator_settings.billing_period

        self._customers: Dict[str, EmulatedCustomer] = {}
        self._subscriptions: Dict[str, EmulatedSubscription] = {}
        self._created_by_key: Dict[Tuple[str, int], str] = {}
        # idempotency key -> (subscription id, template id, level) of the first request
        self._updated_by_key: Dict[str, Tuple[str, str, int]] = {}
        self._template_currency: Dict[str, str] = {
            price.template_id: currency
            for definition in self.config.levels.values()
            for currency, price in definition.currencies.items()
        }

        logger.info(
            "emulated_processor_initialized",
            provider=provider.name,
            billing_period=self._billing_period,
            templates=len(self._template_currency),
        )

    @property
    def provider(self) -> PaymentProvider:
        return self._provider

    def _error(self, code: str, message: Optional[str] = None) -> ProcessorError:
        return ProcessorError(self._provider, code, message)

    def _require_customer(self, customer_id: str) -> EmulatedCustomer:
        customer = self._customers.get(customer_id)
        if customer is None:
            raise self._error(RESOURCE_MISSING, f"No such customer: {customer_id}")
        return customer

    def _require_subscription(self, subscription_id: str) -> EmulatedSubscription:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            raise self._error(RESOURCE_MISSING, f"No such subscription: {subscription_id}")
        return subscription

    def _require_template(self, template_id: str) -> str:
        currency = self._template_currency.get(template_id)
        if currency is None:
            raise self._error(INVALID_TEMPLATE, f"No such price: {template_id}")
        return currency

    async def create_customer(self, subscriber_user: bytes, client_platform: ClientPlatform) -> ProcessorCustomer:
        customer_id = generate_customer_id(self._prefix)
        self._customers[customer_id] = EmulatedCustomer(
            customer_id=customer_id,
            subscriber_user=subscriber_user,
            client_platform=client_platform,
        )
        logger.info(
            "emulated_customer_created",
            provider=self._provider.name,
            customer_id=customer_id,
            client_platform=client_platform.value,
        )
        return ProcessorCustomer(customer_id=customer_id, processor=self._provider)

    async def get_subscription(self, subscription_id: str) -> EmulatedSubscription:
        return self._require_subscription(subscription_id).model_copy(deep=True)

    async def create_subscription(
        self,
        customer_id: str,
        template_id: str,
        level: int,
        last_subscription_created_at: int,
    ) -> SubscriptionId:
        customer = self._require_customer(customer_id)
        currency = self._require_template(template_id)

        replay_key = (customer_id, last_subscription_created_at)
        existing_id = self._created_by_key.get(replay_key)
        if existing_id is not None:
            logger.debug("emulated_subscription_create_replayed", subscription_id=existing_id)
            return SubscriptionId(id=existing_id)

        if customer.requires_action:
            raise self._error(PAYMENT_REQUIRES_ACTION, "Payment needs customer confirmation")

        subscription = EmulatedSubscription(
            id=generate_subscription_id(self._prefix),
            customer_id=customer_id,
            template_id=template_id,
            level=level,
            currency=currency,
            created_at=self._clock(),
        )
        self._subscriptions[subscription.id] = subscription
        self._created_by_key[replay_key] = subscription.id

        logger.info(
            "emulated_subscription_created",
            provider=self._provider.name,
            subscription_id=subscription.id,
            customer_id=customer_id,
            level=level,
            currency=currency,
        )
        return SubscriptionId(id=subscription.id)

    async def update_subscription(
        self,
        subscription: EmulatedSubscription,
        template_id: str,
        level: int,
        idempotency_key: str,
    ) -> SubscriptionId:
        request = (subscription.id, template_id, level)
        previous = self._updated_by_key.get(idempotency_key)
        if previous is not None:
            if previous != request:
                raise self._error(
                    IDEMPOTENCY_KEY_IN_USE,
                    f"Key {idempotency_key} was used with different request parameters",
                )
            logger.debug("emulated_subscription_update_replayed", subscription_id=subscription.id)
            return SubscriptionId(id=subscription.id)

        stored = self._require_subscription(subscription.id)
        if stored.status != EmulatedSubscriptionStatus.ACTIVE:
            raise self._error(SUBSCRIPTION_NOT_ACTIVE, f"Subscription {stored.id} is canceled")

        stored.currency = self._require_template(template_id)
        stored.template_id = template_id
        old_level = stored.level
        stored.level = level

        self._updated_by_key[idempotency_key] = request

        logger.info(
            "emulated_subscription_updated",
            provider=self._provider.name,
            subscription_id=stored.id,
            old_level=old_level,
            new_level=level,
        )
        return SubscriptionId(id=stored.id)

    async def get_level_and_currency_for_subscription(self, subscription: EmulatedSubscription) -> LevelAndCurrency:
        return LevelAndCurrency(level=subscription.level, currency=subscription.currency)

    async def get_receipt_item(self, subscription_id: str) -> ReceiptItem:
        subscription = self._require_subscription(subscription_id)
        if subscription.status != EmulatedSubscriptionStatus.ACTIVE:
            raise self._error(SUBSCRIPTION_NOT_ACTIVE, f"Subscription {subscription_id} is canceled")

        cycle = billing_cycles_elapsed(subscription.created_at, self._clock(), self._billing_period)
        item_id = subscription.items.get(cycle)
        if item_id is None:
            item_id = generate_item_id(self._prefix)
            subscription.items[cycle] = item_id

        paid_at = subscription.created_at + (cycle - 1) * billing_period_to_timedelta(self._billing_period)
        return ReceiptItem(item_id=item_id, paid_at=paid_at, level=subscription.level)

    async def cancel_all_active_subscriptions(self, customer_id: str) -> None:
        self._require_customer(customer_id)
        now = self._clock()
        canceled = []
        for subscription in self._subscriptions.values():
            if subscription.customer_id == customer_id and subscription.status == EmulatedSubscriptionStatus.ACTIVE:
                subscription.status = EmulatedSubscriptionStatus.CANCELED
                subscription.canceled_at = now
                canceled.append(subscription.id)

        logger.info(
            "emulated_subscriptions_canceled",
            provider=self._provider.name,
            customer_id=customer_id,
            subscription_ids=canceled,
        )

    def require_action_for(self, customer_id: str, required: bool = True) -> None:
        """Make new subscriptions for a customer fail until payment is confirmed."""
        self._require_customer(customer_id).requires_action = required

    def get_subscriptions_for_customer(self, customer_id: str) -> List[EmulatedSubscription]:
        return [s for s in self._subscriptions.values() if s.customer_id == customer_id]

    def has_customer(self, customer_id: str) -> bool:
        return customer_id in self._customers

    def __repr__(self) -> str:
        return (
            f"EmulatedPaymentProcessor(provider={self._provider.name}, "
            f"customers={len(self._customers)}, subscriptions={len(self._subscriptions)})"
        )
