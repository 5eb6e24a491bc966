"""Errors raised by subscription management operations.

Every orchestrator operation either returns normally or raises exactly one of
these. Processor failures that are not classified here propagate as the
processor's own ``ProcessorError``.
"""

from typing import Optional


class SubscriptionException(Exception):
    """Base exception for subscription management errors."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message


class NotFound(SubscriptionException):
    """Subscriber or active subscription not found."""


class Forbidden(SubscriptionException):
    """Subscriber credentials do not match the stored record."""


class InvalidArguments(SubscriptionException):
    """Request arguments are malformed or failed verification."""


class InvalidLevel(SubscriptionException):
    """Requested subscription level is not valid for this subscriber."""


class ProcessorConflict(SubscriptionException):
    """Subscriber is already attached to a different payment processor."""


class PaymentRequiresAction(SubscriptionException):
    """Payment processor requires additional customer action."""


class ReceiptAlreadyRedeemed(SubscriptionException):
    """Payment item was already redeemed for a different credential request."""
