"""Shared fixtures: fresh in-memory collaborators and a controllable clock."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from subscriptions_core.config import Config
from subscriptions_core.models import PaymentProvider, SubscriberCredentials
from subscriptions_core.processors.emulated import EmulatedPaymentProcessor
from subscriptions_core.repositories.issued_receipts import InMemoryIssuedReceiptsLedger
from subscriptions_core.repositories.level_repository import SubscriptionLevelRepository
from subscriptions_core.repositories.subscriber_store import InMemorySubscriberStore
from subscriptions_core.services.receipt_issuer import Ed25519ReceiptIssuer
from subscriptions_core.services.subscription_manager import SubscriptionManager

CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "subscriptions.yaml"

START = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Manually advanced clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def config():
    """Configuration loaded from the shipped subscriptions.yaml."""
    return Config(str(CONFIG_PATH))


@pytest.fixture
def clock():
    return Clock(START)


@pytest.fixture
def make_credentials(clock):
    """Build credentials for a subscriber at the clock's current time."""

    def _make(user: bytes = b"\x01" * 16, hmac: bytes = b"\xaa" * 32) -> SubscriberCredentials:
        return SubscriberCredentials(subscriber_user=user, hmac=hmac, now=clock())

    return _make


@pytest.fixture
def credentials(make_credentials):
    return make_credentials()


@pytest.fixture
def make_request_bytes():
    """Serialized credential request with a nonce derived from ``seed``."""

    def _make(seed: int = 7) -> bytes:
        return bytes([0]) + bytes([seed]) * 32

    return _make


@pytest.fixture
def subscriber_store():
    store = InMemorySubscriberStore()
    yield store
    store.clear()


@pytest.fixture
def ledger():
    ledger = InMemoryIssuedReceiptsLedger()
    yield ledger
    ledger.clear()


@pytest.fixture
def issuer():
    return Ed25519ReceiptIssuer()


@pytest.fixture
def level_repository(config):
    return SubscriptionLevelRepository(config=config)


@pytest.fixture
def stripe(config, clock):
    return EmulatedPaymentProcessor(PaymentProvider.STRIPE, config=config, clock=clock)


@pytest.fixture
def braintree(config, clock):
    return EmulatedPaymentProcessor(PaymentProvider.BRAINTREE, config=config, clock=clock)


@pytest.fixture
def manager(subscriber_store, stripe, braintree, issuer, ledger):
    return SubscriptionManager(
        subscriber_store=subscriber_store,
        processors=[stripe, braintree],
        receipt_issuer=issuer,
        issued_receipts_ledger=ledger,
    )
