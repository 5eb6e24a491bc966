"""Subscriber store - persistence contract and in-memory implementation.

Every mutation is a conditional, atomic operation on a single subscriber
record. Lost updates surface as explicit outcomes (``None`` from ``create``,
the winning record from ``set_processor_and_customer_id``) instead of being
silently merged.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from hmac import compare_digest
from typing import Dict, Optional

from subscriptions_core.logging_config import get_logger
from subscriptions_core.models.subscriber import (
    GetResult,
    ProcessorCustomer,
    SubscriberRecord,
)
from subscriptions_core.state_logger import (
    log_processor_customer_set,
    log_subscriber_accessed,
    log_subscriber_canceled,
    log_subscriber_created,
    log_subscription_level_change,
)

logger = get_logger(__name__)


class SubscriberNotStoredError(Exception):
    """Raised when updating a subscriber that does not exist in the store."""

    pass


class SubscriberStore(ABC):
    """Persistence contract for subscriber records."""

    @abstractmethod
    async def get(self, user: bytes, hmac: bytes) -> GetResult:
        """Look up a subscriber, checking the authentication tag.

        Returns:
            ``GetResult`` of type FOUND, NOT_STORED or PASSWORD_MISMATCH
        """

    @abstractmethod
    async def create(self, user: bytes, password: bytes, created_at: datetime) -> Optional[SubscriberRecord]:
        """Create a subscriber record.

        Returns:
            The stored record (the existing one if it was already created with
            the same password), or None if the identity exists with a different
            password.
        """

    @abstractmethod
    async def accessed_at(self, user: bytes, accessed_at: datetime) -> None:
        """Update the last access time."""

    @abstractmethod
    async def canceled_at(self, user: bytes, canceled_at: datetime) -> None:
        """Mark the subscriber canceled and clear its subscription."""

    @abstractmethod
    async def set_processor_and_customer_id(
        self,
        user_record: SubscriberRecord,
        active_processor_customer: ProcessorCustomer,
        updated_at: datetime,
    ) -> SubscriberRecord:
        """Attach a processor customer if the record has none yet.

        Compare-and-set against ``user_record``. When another writer already
        stored a processor customer, the stored record is returned unchanged.
        """

    @abstractmethod
    async def subscription_created(
        self,
        user: bytes,
        subscription_id: str,
        subscription_created_at: datetime,
        level: int,
    ) -> None:
        """Record a newly created processor subscription."""

    @abstractmethod
    async def subscription_level_changed(
        self,
        user: bytes,
        level_changed_at: datetime,
        level: int,
        subscription_id: str,
    ) -> None:
        """Record a level change of the processor subscription."""


class InMemorySubscriberStore(SubscriberStore):
    """In-memory subscriber store.

    Mutations are serialized with an ``asyncio.Lock``; records handed out are
    copies, so callers only ever hold snapshots.
    """

    def __init__(self):
        """Initialize subscriber store with empty storage."""
        self._records: Dict[bytes, SubscriberRecord] = {}
        self._lock = asyncio.Lock()

    def _require(self, user: bytes) -> SubscriberRecord:
        record = self._records.get(user)
        if record is None:
            raise SubscriberNotStoredError(f"Subscriber not found: {user.hex()[:8]}")
        return record

    async def get(self, user: bytes, hmac: bytes) -> GetResult:
        async with self._lock:
            record = self._records.get(user)
            if record is None:
                return GetResult.not_stored()
            if not compare_digest(record.password, hmac):
                return GetResult.password_mismatch()
            return GetResult.found(record.model_copy(deep=True))

    async def create(self, user: bytes, password: bytes, created_at: datetime) -> Optional[SubscriberRecord]:
        async with self._lock:
            existing = self._records.get(user)
            if existing is not None:
                if compare_digest(existing.password, password):
                    return existing.model_copy(deep=True)
                logger.warning("subscriber_create_conflict", subscriber=user.hex()[:8])
                return None

            record = SubscriberRecord(
                user=user,
                password=password,
                created_at=created_at,
                accessed_at=created_at,
            )
            self._records[user] = record
            log_subscriber_created(user, created_at)
            return record.model_copy(deep=True)

    async def accessed_at(self, user: bytes, accessed_at: datetime) -> None:
        async with self._lock:
            self._require(user).accessed_at = accessed_at
            log_subscriber_accessed(user, accessed_at)

    async def canceled_at(self, user: bytes, canceled_at: datetime) -> None:
        async with self._lock:
            record = self._require(user)
            record.accessed_at = canceled_at
            record.canceled_at = canceled_at
            record.subscription_id = None
            record.subscription_level = None
            log_subscriber_canceled(user, canceled_at, record.processor_customer is not None)

    async def set_processor_and_customer_id(
        self,
        user_record: SubscriberRecord,
        active_processor_customer: ProcessorCustomer,
        updated_at: datetime,
    ) -> SubscriberRecord:
        async with self._lock:
            record = self._require(user_record.user)
            won_race = record.processor_customer is None
            if won_race:
                record.processor_customer = active_processor_customer
                record.processor_customer_updated_at = updated_at
                record.accessed_at = updated_at

            log_processor_customer_set(
                record.user,
                record.processor_customer.processor.name,
                record.processor_customer.customer_id,
                won_race=won_race,
            )
            return record.model_copy(deep=True)

    async def subscription_created(
        self,
        user: bytes,
        subscription_id: str,
        subscription_created_at: datetime,
        level: int,
    ) -> None:
        async with self._lock:
            record = self._require(user)
            old_level = record.subscription_level
            record.subscription_id = subscription_id
            record.subscription_level = level
            record.subscription_created_at = subscription_created_at
            record.subscription_level_changed_at = subscription_created_at
            record.accessed_at = subscription_created_at
            log_subscription_level_change(
                user, subscription_id, old_level, level, reason="subscription_created"
            )

    async def subscription_level_changed(
        self,
        user: bytes,
        level_changed_at: datetime,
        level: int,
        subscription_id: str,
    ) -> None:
        async with self._lock:
            record = self._require(user)
            old_level = record.subscription_level
            record.subscription_id = subscription_id
            record.subscription_level = level
            record.subscription_level_changed_at = level_changed_at
            record.accessed_at = level_changed_at
            log_subscription_level_change(
                user, subscription_id, old_level, level, reason="level_changed"
            )

    def find(self, user: bytes) -> Optional[SubscriberRecord]:
        """Return a copy of the stored record without a credential check."""
        record = self._records.get(user)
        return record.model_copy(deep=True) if record is not None else None

    def count(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        """Clear all subscribers from the store.

        Warning: This removes all data. Use with caution.
        """
        self._records.clear()

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, user: bytes) -> bool:
        return user in self._records

    def __repr__(self) -> str:
        return f"InMemorySubscriberStore(subscribers={self.count()})"
