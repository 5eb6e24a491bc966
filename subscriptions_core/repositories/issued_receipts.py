"""Issued receipts ledger - at-most-once record of redeemed payment items.

A payment item id is unique within its processor, so the ledger is keyed by
``(item_id, processor)``. The insert is conditional: an existing entry is
returned untouched and never overwritten.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from subscriptions_core.logging_config import get_logger
from subscriptions_core.models.receipt import IssuanceOutcome, IssuanceRecord
from subscriptions_core.models.subscriber import PaymentProvider

logger = get_logger(__name__)


class IssuedReceiptsLedger(ABC):
    """Ledger contract for receipt credential issuance."""

    @abstractmethod
    async def record_issuance(
        self,
        item_id: str,
        processor: PaymentProvider,
        request_fingerprint: bytes,
        issued_at: datetime,
    ) -> IssuanceOutcome:
        """Insert an issuance record unless one exists for the key.

        Returns:
            ``IssuanceOutcome(recorded=True)`` with the new record, or
            ``IssuanceOutcome(recorded=False)`` with the existing one
        """


class InMemoryIssuedReceiptsLedger(IssuedReceiptsLedger):
    """In-memory issuance ledger."""

    def __init__(self):
        self._records: Dict[Tuple[str, PaymentProvider], IssuanceRecord] = {}
        self._lock = asyncio.Lock()

    async def record_issuance(
        self,
        item_id: str,
        processor: PaymentProvider,
        request_fingerprint: bytes,
        issued_at: datetime,
    ) -> IssuanceOutcome:
        key = (item_id, processor)
        async with self._lock:
            existing = self._records.get(key)
            if existing is not None:
                logger.debug(
                    "issuance_already_recorded",
                    item_id=item_id,
                    processor=processor.name,
                    same_request=existing.request_fingerprint == request_fingerprint,
                )
                return IssuanceOutcome(recorded=False, record=existing)

            record = IssuanceRecord(
                item_id=item_id,
                processor=processor,
                request_fingerprint=request_fingerprint,
                issued_at=issued_at,
            )
            self._records[key] = record
            return IssuanceOutcome(recorded=True, record=record)

    def find(self, item_id: str, processor: PaymentProvider) -> Optional[IssuanceRecord]:
        return self._records.get((item_id, processor))

    def get_all(self) -> List[IssuanceRecord]:
        return list(self._records.values())

    def count(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return self.count()

    def __repr__(self) -> str:
        return f"InMemoryIssuedReceiptsLedger(records={self.count()})"
