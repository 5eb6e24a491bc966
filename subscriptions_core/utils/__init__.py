"""Utility functions and helpers."""

from subscriptions_core.utils.billing_period import (
    billing_cycles_elapsed,
    billing_period_to_timedelta,
    parse_billing_period,
    truncate_to_day,
    validate_billing_period,
)
from subscriptions_core.utils.token_generator import (
    extract_id_timestamp,
    generate_customer_id,
    generate_item_id,
    generate_subscription_id,
    validate_id,
)

__all__ = [
    # Id generation
    "generate_customer_id",
    "generate_subscription_id",
    "generate_item_id",
    # Id validation
    "validate_id",
    "extract_id_timestamp",
    # Billing period parsing
    "parse_billing_period",
    "billing_period_to_timedelta",
    "validate_billing_period",
    "billing_cycles_elapsed",
    "truncate_to_day",
]
