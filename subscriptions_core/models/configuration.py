"""Subscription level and service configuration models.

Models from subscriptions.yaml configuration.
"""

from enum import Enum
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from subscriptions_core.utils.billing_period import validate_billing_period


class LevelType(str, Enum):
    """Kind of entitlement a level grants."""

    DONATION = "donation"
    BACKUP = "backup"


class CurrencyPrice(BaseModel):
    """Price of a level in one currency."""

    amount: int = Field(..., gt=0, description="Price in the currency's minor unit")
    template_id: str = Field(..., description="Processor product/price id for this level and currency")


class SubscriptionLevel(BaseModel):
    """Subscription level definition from configuration."""

    type: LevelType = Field(default=LevelType.DONATION, description="Entitlement kind")
    badge: str = Field(..., description="Badge granted by this level")
    currencies: Dict[str, CurrencyPrice] = Field(
        default_factory=dict, description="Prices keyed by ISO 4217 currency code"
    )

    @field_validator("currencies")
    @classmethod
    def _lowercase_codes(cls, value: Dict[str, CurrencyPrice]) -> Dict[str, CurrencyPrice]:
        return {code.lower(): price for code, price in value.items()}

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "donation",
                "badge": "B1",
                "currencies": {"usd": {"amount": 500, "template_id": "price_usd_500"}},
            }
        }
    )


class EmulatorConfig(BaseModel):
    """Settings for the in-memory emulated payment processor."""

    id_prefix: str = Field(default="emulator", description="Prefix for generated customer/subscription ids")
    billing_period: str = Field(default="P1M", description="ISO 8601 billing period of emulated subscriptions")

    @field_validator("billing_period")
    @classmethod
    def _valid_period(cls, value: str) -> str:
        if not validate_billing_period(value):
            raise ValueError(f"Invalid billing period: {value}")
        return value


class SubscriptionsConfig(BaseModel):
    """Complete subscriptions.yaml configuration."""

    badge_expiration: str = Field(default="P30D", description="How long a receipt credential is valid")
    badge_grace_period: str = Field(default="P15D", description="Extra validity past the badge expiration")
    levels: Dict[int, SubscriptionLevel] = Field(default_factory=dict)
    emulator: EmulatorConfig = Field(default_factory=EmulatorConfig)

    @field_validator("badge_expiration", "badge_grace_period")
    @classmethod
    def _valid_duration(cls, value: str) -> str:
        if not validate_billing_period(value):
            raise ValueError(f"Invalid duration: {value}")
        return value

    @field_validator("levels")
    @classmethod
    def _non_negative_levels(cls, value: Dict[int, SubscriptionLevel]) -> Dict[int, SubscriptionLevel]:
        for level in value:
            if level < 0:
                raise ValueError(f"Subscription level must be non-negative, got: {level}")
        return value
