"""
Abstract Storage Interfaces

DESIGN DECISION: Business logic only ever talks to these interfaces.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the receipt pipeline decoupled from any vendor SDK

Every transaction operation is scoped by owner. A record that exists
but belongs to someone else is reported exactly like a missing one.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from smallbooks.models.audit import AuditEvent
from smallbooks.models.transaction import ReceiptRef, TransactionRecord


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction persistence.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def create(self, record: TransactionRecord) -> TransactionRecord:
        """
        Persist a new transaction.

        Args:
            record: The fully validated record

        Returns:
            The stored record

        Raises:
            DuplicateError: If a record with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def find(
        self,
        owner_id: str,
        transaction_id: UUID,
    ) -> Optional[TransactionRecord]:
        """
        Retrieve one of the owner's transactions.

        Returns:
            The record, or None if absent or owned by someone else
        """
        pass

    @abstractmethod
    async def update(self, record: TransactionRecord) -> TransactionRecord:
        """
        Replace a stored transaction with a new version.

        Raises:
            NotFoundError: If no record with that id exists for record.owner_id
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, owner_id: str, transaction_id: UUID) -> bool:
        """
        Delete one of the owner's transactions.

        Returns:
            True if a record was deleted, False if none matched
        """
        pass

    @abstractmethod
    async def list_for_owner(
        self,
        owner_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[TransactionRecord]:
        """
        List the owner's transactions, newest occurred_at first.
        """
        pass

    @abstractmethod
    async def find_by_date_range(
        self,
        owner_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[TransactionRecord]:
        """
        Owner's transactions whose UTC calendar day falls in the inclusive
        window. Missing bounds are unbounded.
        """
        pass


class ReceiptImageStoreInterface(ABC):
    """
    Abstract interface for the object store holding original receipts.
    """

    @abstractmethod
    async def store(
        self,
        owner_id: str,
        data: bytes,
        content_type: str,
        filename: Optional[str] = None,
    ) -> ReceiptRef:
        """
        Upload a receipt image.

        Returns:
            Reference with the storage key and retrieval URL

        Raises:
            StorageFailure: If the upload fails
        """
        pass

    @abstractmethod
    async def delete(self, storage_key: str) -> None:
        """
        Remove a stored receipt image.

        Raises:
            StorageFailure: If the object could not be removed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events for one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Events for one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage (or not visible to this owner)."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class StorageFailure(StorageError):
    """The receipt object store rejected an upload or delete."""
    pass
