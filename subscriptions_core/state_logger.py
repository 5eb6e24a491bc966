"""State change logging for subscriber records and receipt issuance.

Subscriber identities are never logged in full, only as a short hex prefix.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from subscriptions_core.logging_config import get_logger

logger = get_logger(__name__)


def subscriber_tag(user: bytes) -> str:
    """Short, log-safe representation of a subscriber identity."""
    return user.hex()[:8]


def log_subscriber_created(user: bytes, created_at: datetime) -> None:
    logger.info(
        "subscriber_created",
        subscriber=subscriber_tag(user),
        created_at=created_at.isoformat(),
    )


def log_subscriber_accessed(user: bytes, accessed_at: datetime) -> None:
    logger.debug(
        "subscriber_accessed",
        subscriber=subscriber_tag(user),
        accessed_at=accessed_at.isoformat(),
    )


def log_subscriber_canceled(user: bytes, canceled_at: datetime, had_processor_customer: bool) -> None:
    logger.info(
        "subscriber_canceled",
        subscriber=subscriber_tag(user),
        canceled_at=canceled_at.isoformat(),
        had_processor_customer=had_processor_customer,
    )


def log_processor_customer_set(
    user: bytes,
    processor: str,
    customer_id: str,
    won_race: bool,
) -> None:
    """Log the outcome of attaching a processor customer to a subscriber.

    Args:
        user: Subscriber identity
        processor: Payment provider of the customer that is now stored
        customer_id: Stored customer id
        won_race: False when a concurrent writer had already stored a customer
    """
    logger.info(
        "processor_customer_set",
        subscriber=subscriber_tag(user),
        processor=processor,
        customer_id=customer_id,
        won_race=won_race,
    )


def log_subscription_level_change(
    user: bytes,
    subscription_id: str,
    old_level: Optional[int],
    new_level: int,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log a subscription being created or moved to a new level.

    Args:
        user: Subscriber identity
        subscription_id: Processor subscription id
        old_level: Previous level, None when the subscription was just created
        new_level: New level
        reason: Reason for the change
        **extra_context: Additional context (processor, currency, etc.)
    """
    logger.info(
        "subscription_level_changed",
        subscriber=subscriber_tag(user),
        subscription_id=subscription_id,
        old_level=old_level,
        new_level=new_level,
        reason=reason,
        **extra_context,
    )


def log_receipt_issued(
    user: bytes,
    item_id: str,
    processor: str,
    level: int,
    expiration: int,
    retried: bool,
) -> None:
    """Log issuance of a receipt credential.

    Args:
        user: Subscriber identity
        item_id: Processor payment item id
        processor: Payment provider
        level: Level encoded in the credential
        expiration: Credential expiration (epoch seconds)
        retried: True when the same request had already been recorded
    """
    logger.info(
        "receipt_credential_issued",
        subscriber=subscriber_tag(user),
        item_id=item_id,
        processor=processor,
        level=level,
        expiration=datetime.fromtimestamp(expiration, tz=timezone.utc).isoformat(),
        retried=retried,
    )
