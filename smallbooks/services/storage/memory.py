"""
In-Memory Storage Implementation

Used when Google Sheets / Cloudinary are not configured and in tests.
Everything lives in process memory and disappears on restart.

Records are stored as model copies, so callers can never mutate what
the store holds.
"""

import asyncio
from datetime import date
from typing import Optional
from uuid import UUID, uuid4

from smallbooks.models.audit import AuditEvent
from smallbooks.models.transaction import ReceiptRef, TransactionRecord
from smallbooks.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    ReceiptImageStoreInterface,
    StorageFailure,
    TransactionStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Dict-backed transaction storage, keyed by id."""

    def __init__(self):
        self._records: dict[UUID, TransactionRecord] = {}
        self._lock = asyncio.Lock()

    def _visible(self, owner_id: str) -> list[TransactionRecord]:
        return [r.model_copy(deep=True) for r in self._records.values() if r.owner_id == owner_id]

    async def create(self, record: TransactionRecord) -> TransactionRecord:
        async with self._lock:
            if record.id in self._records:
                raise DuplicateError(f"Transaction already exists: {record.id}")
            self._records[record.id] = record.model_copy(deep=True)
        return record

    async def find(self, owner_id: str, transaction_id: UUID) -> Optional[TransactionRecord]:
        record = self._records.get(transaction_id)
        if record is None or record.owner_id != owner_id:
            return None
        return record.model_copy(deep=True)

    async def update(self, record: TransactionRecord) -> TransactionRecord:
        async with self._lock:
            existing = self._records.get(record.id)
            if existing is None or existing.owner_id != record.owner_id:
                raise NotFoundError(f"Transaction not found: {record.id}")
            self._records[record.id] = record.model_copy(deep=True)
        return record

    async def delete(self, owner_id: str, transaction_id: UUID) -> bool:
        async with self._lock:
            existing = self._records.get(transaction_id)
            if existing is None or existing.owner_id != owner_id:
                return False
            del self._records[transaction_id]
            return True

    async def list_for_owner(
        self,
        owner_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[TransactionRecord]:
        records = sorted(self._visible(owner_id), key=lambda r: r.occurred_at, reverse=True)
        end = offset + limit if limit is not None else None
        return records[offset:end]

    async def find_by_date_range(
        self,
        owner_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[TransactionRecord]:
        matched = [
            r for r in self._visible(owner_id)
            if (start_date is None or r.occurred_on >= start_date)
            and (end_date is None or r.occurred_on <= end_date)
        ]
        matched.sort(key=lambda r: r.occurred_at)
        return matched


class InMemoryReceiptImageStore(ReceiptImageStoreInterface):
    """Keeps uploaded receipt bytes in a dict. URLs use a memory:// scheme."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def store(
        self,
        owner_id: str,
        data: bytes,
        content_type: str,
        filename: Optional[str] = None,
    ) -> ReceiptRef:
        if not data:
            raise StorageFailure("Refusing to store an empty receipt")
        key = f"{owner_id}/{uuid4().hex}"
        self.objects[key] = (data, content_type)
        return ReceiptRef(storage_key=key, retrieval_url=f"memory://receipts/{key}")

    async def delete(self, storage_key: str) -> None:
        if self.objects.pop(storage_key, None) is None:
            raise StorageFailure(f"No stored receipt with key {storage_key}")


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return sorted(
            (e for e in self.events if e.correlation_id == correlation_id),
            key=lambda e: e.timestamp,
        )

    async def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        return sorted(
            (e for e in self.events if e.entity_type == entity_type and e.entity_id == entity_id),
            key=lambda e: e.timestamp,
        )

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
