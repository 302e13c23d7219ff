"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory implementations
back local runs and tests.
"""

from smallbooks.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    ReceiptImageStoreInterface,
    StorageConnectionError,
    StorageError,
    StorageFailure,
    TransactionStorageInterface,
)
from smallbooks.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
)
from smallbooks.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryReceiptImageStore,
    InMemoryTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ReceiptImageStoreInterface",
    "TransactionStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "StorageFailure",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryReceiptImageStore",
    "InMemoryTransactionStorage",
]
