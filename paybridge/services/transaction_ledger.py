from __future__ import annotations

import threading
from dataclasses import fields
from datetime import datetime, timedelta, timezone
from typing import Any, List, Mapping, Optional

from paybridge.core.logging import get_logger
from paybridge.integrations.payment_gateways.base import TransactionRecord

logger = get_logger(__name__)

_RECORD_FIELDS = {f.name for f in fields(TransactionRecord)} - {"metadata", "updated_at"}


class TransactionLedger:
    """
    In-memory record of payment outcomes.

    Transaction ids are correlation keys supplied by the caller and are not
    unique: duplicates are kept, and lookups and updates act on the first
    match. Records are never evicted.
    """

    def __init__(self) -> None:
        self._records: List[TransactionRecord] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._records)

    def add(self, record: TransactionRecord) -> None:
        with self._lock:
            self._records.append(record)
        logger.info("ledger.transaction.added", transaction_id=record.transaction_id, gateway=record.gateway)

    def update(self, transaction_id: str, updates: Mapping[str, Any]) -> Optional[TransactionRecord]:
        """
        Merge ``updates`` into the first record with ``transaction_id``.

        Record fields are assigned directly, any other key lands in
        ``metadata``. ``updated_at`` always moves forward. Unknown ids are
        ignored and ``None`` is returned.
        """
        with self._lock:
            record = self._find(transaction_id)
            if record is None:
                logger.debug("ledger.transaction.update_skipped", transaction_id=transaction_id)
                return None
            for key, value in updates.items():
                if key in _RECORD_FIELDS:
                    setattr(record, key, value)
                else:
                    record.metadata[key] = value
            now = datetime.now(timezone.utc)
            if now <= record.updated_at:
                now = record.updated_at + timedelta(microseconds=1)
            record.updated_at = now
        logger.info("ledger.transaction.updated", transaction_id=transaction_id, fields=sorted(updates))
        return record

    def get(self, transaction_id: str) -> Optional[TransactionRecord]:
        with self._lock:
            return self._find(transaction_id)

    def list(self) -> List[TransactionRecord]:
        with self._lock:
            return list(self._records)

    def _find(self, transaction_id: str) -> Optional[TransactionRecord]:
        return next((r for r in self._records if r.transaction_id == transaction_id), None)
