"""Subscription orchestration across the subscriber store and payment processors.

Responsibilities:
- Register, look up, and cancel subscribers
- Attach a payment processor customer to a subscriber
- Create or change a subscriber's recurring subscription
- Issue receipt credentials, at most one distinct credential per payment

Every stage is an awaited call into a collaborator; stages run strictly in
order and nothing already completed is rolled back when a later stage fails.
Concurrent calls for one subscriber are made safe by the store's conditional
writes and the ledger's conditional insert, not by locking here.
"""

import functools
from datetime import datetime
from typing import Awaitable, Callable, Iterable, TypeVar, Union

from subscriptions_core.exceptions import (
    Forbidden,
    InvalidArguments,
    InvalidLevel,
    NotFound,
    PaymentRequiresAction,
    ProcessorConflict,
    ReceiptAlreadyRedeemed,
)
from subscriptions_core.logging_config import bound_context, get_logger
from subscriptions_core.models import (
    ClientPlatform,
    GetReceiptCredentialsRequest,
    GetResultType,
    LevelAndCurrency,
    ProcessorCustomer,
    ReceiptItem,
    ReceiptResult,
    SubscriberCredentials,
    SubscriberRecord,
)
from subscriptions_core.processors.base import (
    PAYMENT_REQUIRES_ACTION,
    RESOURCE_MISSING,
    PaymentProcessor,
    ProcessorError,
    SubscriptionPaymentProcessor,
)
from subscriptions_core.processors.registry import ProcessorRegistry
from subscriptions_core.repositories.issued_receipts import IssuedReceiptsLedger
from subscriptions_core.repositories.subscriber_store import (
    SubscriberNotStoredError,
    SubscriberStore,
)
from subscriptions_core.services.receipt_issuer import (
    InvalidReceiptRequestError,
    ReceiptCredentialIssuer,
    VerificationFailedError,
)
from subscriptions_core.state_logger import log_receipt_issued, subscriber_tag

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

LevelTransitionValidator = Callable[[int, int], bool]
PaymentSetup = Callable[[SubscriptionPaymentProcessor, str], Awaitable[R]]
ReceiptExpiration = Callable[[ReceiptItem], datetime]


def _subscriber_context(operation):
    """Bind the subscriber tag and operation name to every log event of ``operation``."""

    @functools.wraps(operation)
    async def wrapper(self, credentials: SubscriberCredentials, *args, **kwargs):
        with bound_context(subscriber=subscriber_tag(credentials.subscriber_user), operation=operation.__name__):
            return await operation(self, credentials, *args, **kwargs)

    return wrapper


class SubscriptionManager:
    """Manages subscribers and their subscriptions with the payment processors.

    Some operations only apply to processors with server-managed customers;
    those take the ``SubscriptionPaymentProcessor`` to use as an argument.
    """

    def __init__(
        self,
        subscriber_store: SubscriberStore,
        processors: Union[ProcessorRegistry, Iterable[PaymentProcessor]],
        receipt_issuer: ReceiptCredentialIssuer,
        issued_receipts_ledger: IssuedReceiptsLedger,
    ):
        """Initialize subscription manager.

        Args:
            subscriber_store: Subscriber persistence
            processors: Registry, or adapters to build one from
            receipt_issuer: Receipt credential primitive
            issued_receipts_ledger: Record of redeemed payment items
        """
        self.store = subscriber_store
        self.processors = processors if isinstance(processors, ProcessorRegistry) else ProcessorRegistry(processors)
        self.receipt_issuer = receipt_issuer
        self.ledger = issued_receipts_ledger

        logger.info("subscription_manager_initialized", providers=[p.name for p in self.processors.providers])

    async def _persist(self, write: Awaitable[T]) -> T:
        try:
            return await write
        except SubscriberNotStoredError as e:
            raise NotFound(str(e)) from e

    @_subscriber_context
    async def update_subscriber(self, credentials: SubscriberCredentials) -> None:
        """Create the subscriber, or touch its access time if it exists.

        Raises:
            Forbidden: If the identity exists with a different tag
        """
        result = await self.store.get(credentials.subscriber_user, credentials.hmac)

        if result.type == GetResultType.PASSWORD_MISMATCH:
            raise Forbidden("subscriberId mismatch")

        if result.type == GetResultType.NOT_STORED:
            record = await self.store.create(credentials.subscriber_user, credentials.hmac, credentials.now)
            if record is None:
                raise Forbidden("subscriberId mismatch")
            return

        await self._persist(self.store.accessed_at(credentials.subscriber_user, credentials.now))

    @_subscriber_context
    async def get_subscriber(self, credentials: SubscriberCredentials) -> SubscriberRecord:
        """Get the subscriber record.

        Raises:
            Forbidden: If the tag does not match
            NotFound: If no such subscriber exists
        """
        result = await self.store.get(credentials.subscriber_user, credentials.hmac)
        if result.type == GetResultType.PASSWORD_MISMATCH:
            raise Forbidden("subscriberId mismatch")
        if result.type == GetResultType.NOT_STORED:
            raise NotFound()
        return result.record

    @_subscriber_context
    async def delete_subscriber(self, credentials: SubscriberCredentials) -> None:
        """Cancel the subscriber's remote subscriptions, then mark it canceled.

        Remote cancellation happens first so a failure in between leaves a
        subscriber that is still active locally and can be deleted again.

        Raises:
            NotFound: If the subscriber does not exist or the tag does not match
        """
        result = await self.store.get(credentials.subscriber_user, credentials.hmac)
        if result.type != GetResultType.FOUND:
            raise NotFound()

        processor_customer = result.record.processor_customer
        # no customer means no payment method was ever added
        if processor_customer is not None:
            processor = self.processors.get(processor_customer.processor)
            try:
                await processor.cancel_all_active_subscriptions(processor_customer.customer_id)
            except ProcessorError as e:
                if e.code != RESOURCE_MISSING:
                    raise
                logger.info(
                    "remote_customer_missing",
                    processor=processor_customer.processor.name,
                    customer_id=processor_customer.customer_id,
                )

        await self._persist(self.store.canceled_at(credentials.subscriber_user, credentials.now))

    @_subscriber_context
    async def add_payment_method_to_customer(
        self,
        credentials: SubscriberCredentials,
        processor: SubscriptionPaymentProcessor,
        client_platform: ClientPlatform,
        payment_setup: PaymentSetup,
    ) -> R:
        """Make sure the subscriber has a customer in ``processor``, then set up a payment method.

        If the subscriber has no customer yet, one is created and stored. When a
        concurrent request stores its customer first, that customer is used and
        the one created here is left unused in the processor.

        Args:
            credentials: Subscriber credentials
            processor: Processor with server-managed customers; must match any
                processor the subscriber already uses
            client_platform: Platform of the requesting client
            payment_setup: Coroutine function of (processor, customer id) that
                starts adding the payment method

        Returns:
            Whatever ``payment_setup`` returns

        Raises:
            ProcessorConflict: If the subscriber uses a different processor
        """
        record = await self.get_subscriber(credentials)

        existing = record.processor_customer
        if existing is not None:
            if existing.processor != processor.provider:
                raise ProcessorConflict("existing processor does not match")
        else:
            created = await processor.create_customer(credentials.subscriber_user, client_platform)
            record = await self._persist(
                self.store.set_processor_and_customer_id(
                    record,
                    ProcessorCustomer(customer_id=created.customer_id, processor=processor.provider),
                    credentials.now,
                )
            )

        customer = record.processor_customer
        if customer is None or customer.processor != processor.provider:
            raise ProcessorConflict("existing processor does not match")

        return await payment_setup(processor, customer.customer_id)

    @_subscriber_context
    async def update_subscription_level_for_customer(
        self,
        credentials: SubscriberCredentials,
        record: SubscriberRecord,
        processor: SubscriptionPaymentProcessor,
        level: int,
        currency: str,
        idempotency_key: str,
        subscription_template_id: str,
        transition_validator: LevelTransitionValidator,
    ) -> None:
        """Create or change the subscriber's subscription in the processor and record it.

        Without a subscription one is created. With one, nothing happens if it
        already has the requested level and currency; otherwise it is updated
        if the validator allows the transition.

        Args:
            credentials: Subscriber credentials
            record: Record previously read with ``get_subscriber``
            processor: Processor holding the subscriber's customer
            level: Desired level
            currency: Desired currency (case insensitive)
            idempotency_key: Deduplicates the update within the processor
            subscription_template_id: Processor product for the level
            transition_validator: ``(old_level, new_level) -> bool``

        Raises:
            NotFound: If the subscriber has no processor customer
            ProcessorConflict: If the customer belongs to another processor
            InvalidLevel: If the transition is rejected
            PaymentRequiresAction: If the processor needs customer confirmation
            ProcessorError: For any other processor failure
        """
        if record.subscription_id is not None:
            subscription = await processor.get_subscription(record.subscription_id)
            existing = await processor.get_level_and_currency_for_subscription(subscription)

            if existing == LevelAndCurrency(level=level, currency=currency):
                logger.debug(
                    "subscription_level_unchanged",
                    subscription_id=record.subscription_id,
                    level=level,
                )
                return

            if not transition_validator(existing.level, level):
                raise InvalidLevel(f"Cannot change level from {existing.level} to {level}")

            updated = await processor.update_subscription(
                subscription, subscription_template_id, level, idempotency_key
            )
            await self._persist(
                self.store.subscription_level_changed(
                    credentials.subscriber_user, credentials.now, level, updated.id
                )
            )
            return

        customer = record.processor_customer
        if customer is None:
            raise NotFound("subscriber has no payment processor customer")
        if customer.processor != processor.provider:
            raise ProcessorConflict("existing processor does not match")

        last_subscription_created_at = (
            int(record.subscription_created_at.timestamp()) if record.subscription_created_at is not None else 0
        )

        try:
            created = await processor.create_subscription(
                customer.customer_id, subscription_template_id, level, last_subscription_created_at
            )
        except ProcessorError as e:
            if e.code == PAYMENT_REQUIRES_ACTION:
                raise PaymentRequiresAction() from e
            raise

        # a failure here leaves the remote subscription in place
        await self._persist(
            self.store.subscription_created(credentials.subscriber_user, created.id, credentials.now, level)
        )

    @_subscriber_context
    async def create_receipt_credentials(
        self,
        credentials: SubscriberCredentials,
        request: GetReceiptCredentialsRequest,
        expiration: ReceiptExpiration,
    ) -> ReceiptResult:
        """Issue a receipt credential for the subscription's latest payment.

        The payment is recorded in the ledger before signing. Retrying with
        the same credential request signs again; a different request for an
        already redeemed payment is refused.

        Args:
            credentials: Subscriber credentials
            request: Serialized credential request
            expiration: Maps the receipt item to the credential expiration

        Raises:
            NotFound: If the subscriber or its subscription does not exist
            Forbidden: If the tag does not match
            InvalidArguments: If the request is malformed or fails verification
            ReceiptAlreadyRedeemed: If the payment was redeemed with another request
        """
        record = await self.get_subscriber(credentials)
        if record.subscription_id is None:
            raise NotFound()

        try:
            credential_request = self.receipt_issuer.decode_request(request.receipt_credential_request)
        except InvalidReceiptRequestError as e:
            raise InvalidArguments("invalid receipt credential request") from e

        if record.processor_customer is None:
            raise NotFound()
        provider = record.processor_customer.processor
        processor = self.processors.get(provider)

        receipt = await processor.get_receipt_item(record.subscription_id)

        fingerprint = credential_request.fingerprint()
        outcome = await self.ledger.record_issuance(receipt.item_id, provider, fingerprint, credentials.now)
        if not outcome.recorded and outcome.record.request_fingerprint != fingerprint:
            raise ReceiptAlreadyRedeemed(f"receipt item {receipt.item_id} already redeemed")

        expiration_seconds = int(expiration(receipt).timestamp())
        try:
            response = self.receipt_issuer.issue(credential_request, expiration_seconds, receipt.level)
        except VerificationFailedError as e:
            raise InvalidArguments("receipt credential request failed verification") from e

        log_receipt_issued(
            credentials.subscriber_user,
            receipt.item_id,
            provider.name,
            receipt.level,
            expiration_seconds,
            retried=not outcome.recorded,
        )
        return ReceiptResult(
            receipt_credential_response=response,
            receipt_item=receipt,
            payment_provider=provider,
        )
