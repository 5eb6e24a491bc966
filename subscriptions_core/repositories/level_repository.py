"""Subscription level repository - configured levels, prices, and badge validity.

Loads from config/subscriptions.yaml and provides lookup methods, the level
transition rule, and the receipt credential expiration policy.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from subscriptions_core.config import Config, get_config
from subscriptions_core.exceptions import InvalidArguments, InvalidLevel
from subscriptions_core.models import ReceiptItem, SubscriptionLevel
from subscriptions_core.utils.billing_period import (
    billing_period_to_timedelta,
    truncate_to_day,
)


class SubscriptionLevelRepository:
    """Repository for subscription level definitions."""

    def __init__(self, config: Optional[Config] = None):
        """Initialize level repository.

        Args:
            config: Configuration instance. If not provided, uses global config.
        """
        self._config = config or get_config()
        self._levels: Dict[int, SubscriptionLevel] = {}
        self._load_levels()

    def _load_levels(self) -> None:
        self._levels = dict(self._config.levels)

    def get_level(self, level: int) -> SubscriptionLevel:
        """Get level definition.

        Raises:
            InvalidLevel: If the level is not configured
        """
        definition = self._levels.get(level)
        if definition is None:
            raise InvalidLevel(f"Subscription level not configured: {level}")
        return definition

    def find_level(self, level: int) -> Optional[SubscriptionLevel]:
        """Find level definition (returns None if not configured)."""
        return self._levels.get(level)

    def get_template_id(self, level: int, currency: str) -> str:
        """Get the processor template id for a level and currency.

        Raises:
            InvalidLevel: If the level is not configured
            InvalidArguments: If the level has no price in ``currency``
        """
        price = self.get_level(level).currencies.get(currency.lower())
        if price is None:
            raise InvalidArguments(f"Unsupported currency {currency} for level {level}")
        return price.template_id

    def is_transition_valid(self, old_level: int, new_level: int) -> bool:
        """A subscription may only move between configured levels of the same type."""
        old_definition = self._levels.get(old_level)
        new_definition = self._levels.get(new_level)
        if old_definition is None or new_definition is None:
            return False
        return old_definition.type == new_definition.type

    def receipt_expiration(self, item: ReceiptItem) -> datetime:
        """Expiration of a receipt credential for ``item``.

        ``paid_at`` plus badge expiration and grace period, rounded up to the
        next UTC midnight.
        """
        expiration = (
            item.paid_at
            + billing_period_to_timedelta(self._config.badge_expiration)
            + billing_period_to_timedelta(self._config.badge_grace_period)
        )
        return truncate_to_day(expiration) + timedelta(days=1)

    def get_all_levels(self) -> List[int]:
        return sorted(self._levels)

    def reload(self) -> None:
        """Reload level definitions from configuration."""
        self._config.reload()
        self._load_levels()

    def __len__(self) -> int:
        return len(self._levels)

    def __contains__(self, level: int) -> bool:
        return level in self._levels

    def __repr__(self) -> str:
        return f"SubscriptionLevelRepository(levels={len(self._levels)})"
