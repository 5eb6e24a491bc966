"""Tests for ProcessorRegistry."""

import pytest

from subscriptions_core.models import PaymentProvider
from subscriptions_core.processors.emulated import EmulatedPaymentProcessor
from subscriptions_core.processors.registry import (
    ProcessorNotConfiguredError,
    ProcessorRegistry,
)


def test_lookup_by_provider(stripe, braintree):
    registry = ProcessorRegistry([stripe, braintree])

    assert registry.get(PaymentProvider.STRIPE) is stripe
    assert registry.get(PaymentProvider.BRAINTREE) is braintree
    assert registry.providers == [PaymentProvider.STRIPE, PaymentProvider.BRAINTREE]
    assert len(registry) == 2


def test_missing_provider(stripe):
    registry = ProcessorRegistry([stripe])

    assert PaymentProvider.APPLE_APP_STORE not in registry
    with pytest.raises(ProcessorNotConfiguredError):
        registry.get(PaymentProvider.APPLE_APP_STORE)


def test_duplicate_provider_rejected(config, clock, stripe):
    duplicate = EmulatedPaymentProcessor(PaymentProvider.STRIPE, config=config, clock=clock)
    with pytest.raises(ValueError, match="Duplicate"):
        ProcessorRegistry([stripe, duplicate])


def test_repr(stripe, braintree):
    assert repr(ProcessorRegistry([stripe, braintree])) == "ProcessorRegistry(STRIPE, BRAINTREE)"
