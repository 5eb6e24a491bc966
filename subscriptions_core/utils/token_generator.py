"""Identifier generation for the emulated payment processor.

Generates customer, subscription, and payment item ids in a format that is
easy to recognize in logs.
"""

import re
import time
import uuid
from typing import Optional

_ID_PATTERN = re.compile(r"^[a-zA-Z0-9-]+_(cus|sub|item)_[a-f0-9]{16}_\d{13}$")


def _generate_id(prefix: str, kind: str) -> str:
    # 16 character hex string plus millis timestamp
    token_id = uuid.uuid4().hex[:16]
    timestamp = int(time.time() * 1000)
    return f"{prefix}_{kind}_{token_id}_{timestamp}"


def generate_customer_id(prefix: str = "emulator") -> str:
    """Generate a unique customer id.

    Format: {prefix}_cus_{uuid}_{timestamp}
    Example: emulator_cus_a1b2c3d4e5f6a7b8_1700000000000
    """
    return _generate_id(prefix, "cus")


def generate_subscription_id(prefix: str = "emulator") -> str:
    """Generate a unique subscription id.

    Format: {prefix}_sub_{uuid}_{timestamp}
    """
    return _generate_id(prefix, "sub")


def generate_item_id(prefix: str = "emulator") -> str:
    """Generate a unique payment item id.

    Format: {prefix}_item_{uuid}_{timestamp}
    """
    return _generate_id(prefix, "item")


def validate_id(value: str, kind: Optional[str] = None) -> bool:
    """Validate a generated id.

    Args:
        value: Id string to validate
        kind: Expected kind ("cus", "sub" or "item"), or None for any

    Returns:
        True if the id format is valid, False otherwise
    """
    if not value or not isinstance(value, str):
        return False

    match = _ID_PATTERN.match(value)
    if not match:
        return False

    return kind is None or match.group(1) == kind


def extract_id_timestamp(value: str) -> Optional[int]:
    """Extract the creation timestamp (millis) from a generated id."""
    if not validate_id(value):
        return None
    return int(value.rsplit("_", 1)[1])
