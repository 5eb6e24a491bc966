"""Tests for InMemorySubscriberStore - conditional subscriber persistence."""

import asyncio
from datetime import timedelta

import pytest

from subscriptions_core.models import (
    GetResultType,
    PaymentProvider,
    ProcessorCustomer,
)
from subscriptions_core.repositories.subscriber_store import SubscriberNotStoredError

USER = b"\x01" * 16
TAG = b"\xaa" * 32
OTHER_TAG = b"\xbb" * 32


@pytest.fixture
def now(clock):
    return clock()


@pytest.fixture
async def stored(subscriber_store, now):
    """A subscriber that has just been created."""
    return await subscriber_store.create(USER, TAG, now)


class TestCreateAndGet:
    """Test subscriber creation and credential-checked lookup."""

    async def test_create_new(self, subscriber_store, now):
        record = await subscriber_store.create(USER, TAG, now)

        assert record.user == USER
        assert record.created_at == now
        assert record.accessed_at == now
        assert record.processor_customer is None
        assert USER in subscriber_store

    async def test_get_found(self, subscriber_store, stored):
        result = await subscriber_store.get(USER, TAG)

        assert result.type == GetResultType.FOUND
        assert result.record.user == USER

    async def test_get_not_stored(self, subscriber_store):
        result = await subscriber_store.get(USER, TAG)

        assert result.type == GetResultType.NOT_STORED
        assert result.record is None

    async def test_get_password_mismatch(self, subscriber_store, stored):
        result = await subscriber_store.get(USER, OTHER_TAG)

        assert result.type == GetResultType.PASSWORD_MISMATCH
        assert result.record is None

    async def test_create_existing_same_password_returns_existing(self, subscriber_store, stored, now):
        again = await subscriber_store.create(USER, TAG, now + timedelta(minutes=5))

        assert again is not None
        assert again.created_at == stored.created_at
        assert len(subscriber_store) == 1

    async def test_create_existing_different_password_returns_none(self, subscriber_store, stored, now):
        assert await subscriber_store.create(USER, OTHER_TAG, now) is None
        assert subscriber_store.find(USER).password == TAG

    async def test_records_are_snapshots(self, subscriber_store, stored):
        stored.subscription_id = "tampered"

        assert subscriber_store.find(USER).subscription_id is None


class TestUpdates:
    """Test timestamp and subscription updates."""

    async def test_accessed_at(self, subscriber_store, stored, now):
        later = now + timedelta(hours=1)
        await subscriber_store.accessed_at(USER, later)

        assert subscriber_store.find(USER).accessed_at == later

    async def test_update_unknown_subscriber(self, subscriber_store, now):
        with pytest.raises(SubscriberNotStoredError):
            await subscriber_store.accessed_at(USER, now)
        with pytest.raises(SubscriberNotStoredError):
            await subscriber_store.subscription_created(USER, "sub_1", now, 500)

    async def test_subscription_created(self, subscriber_store, stored, now):
        await subscriber_store.subscription_created(USER, "sub_1", now, 500)

        record = subscriber_store.find(USER)
        assert record.subscription_id == "sub_1"
        assert record.subscription_level == 500
        assert record.subscription_created_at == now
        assert record.subscription_level_changed_at == now

    async def test_subscription_level_changed(self, subscriber_store, stored, now):
        await subscriber_store.subscription_created(USER, "sub_1", now, 500)
        later = now + timedelta(days=3)

        await subscriber_store.subscription_level_changed(USER, later, 1000, "sub_1")

        record = subscriber_store.find(USER)
        assert record.subscription_level == 1000
        assert record.subscription_created_at == now
        assert record.subscription_level_changed_at == later

    async def test_canceled_at_clears_subscription(self, subscriber_store, stored, now):
        await subscriber_store.subscription_created(USER, "sub_1", now, 500)
        later = now + timedelta(days=1)

        await subscriber_store.canceled_at(USER, later)

        record = subscriber_store.find(USER)
        assert record.is_canceled
        assert record.canceled_at == later
        assert record.subscription_id is None
        assert record.subscription_level is None


class TestProcessorCustomer:
    """Test the compare-and-set processor customer write."""

    async def test_first_writer_wins(self, subscriber_store, stored, now):
        customer = ProcessorCustomer(customer_id="cus_a", processor=PaymentProvider.STRIPE)

        record = await subscriber_store.set_processor_and_customer_id(stored, customer, now)

        assert record.processor_customer == customer
        assert record.processor_customer_updated_at == now

    async def test_second_writer_gets_stored_customer(self, subscriber_store, stored, now):
        first = ProcessorCustomer(customer_id="cus_a", processor=PaymentProvider.STRIPE)
        second = ProcessorCustomer(customer_id="cus_b", processor=PaymentProvider.BRAINTREE)

        await subscriber_store.set_processor_and_customer_id(stored, first, now)
        # stale snapshot without a customer
        record = await subscriber_store.set_processor_and_customer_id(stored, second, now)

        assert record.processor_customer == first
        assert subscriber_store.find(USER).processor_customer == first

    async def test_concurrent_writers_agree(self, subscriber_store, stored, now):
        candidates = [
            ProcessorCustomer(customer_id=f"cus_{i}", processor=PaymentProvider.STRIPE) for i in range(10)
        ]

        results = await asyncio.gather(
            *(subscriber_store.set_processor_and_customer_id(stored, c, now) for c in candidates)
        )

        winners = {r.processor_customer.customer_id for r in results}
        assert len(winners) == 1
        assert subscriber_store.find(USER).processor_customer.customer_id in winners


class TestStoreHelpers:
    async def test_count_and_clear(self, subscriber_store, now):
        await subscriber_store.create(b"\x01" * 16, TAG, now)
        await subscriber_store.create(b"\x02" * 16, TAG, now)

        assert subscriber_store.count() == 2
        assert "subscribers=2" in repr(subscriber_store)

        subscriber_store.clear()
        assert len(subscriber_store) == 0
