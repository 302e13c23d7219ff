"""Services package."""

from smallbooks.services.image import CloudinaryReceiptStore
from smallbooks.services.ocr import (
    EngineNotStartedError,
    OCREngineInterface,
    OCRError,
    OcrFailure,
    TesseractOCREngine,
)
from smallbooks.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryReceiptImageStore,
    InMemoryTransactionStorage,
    NotFoundError,
    ReceiptImageStoreInterface,
    StorageConnectionError,
    StorageError,
    StorageFailure,
    TransactionStorageInterface,
)

__all__ = [
    # Image storage
    "CloudinaryReceiptStore",
    # OCR services
    "EngineNotStartedError",
    "OCREngineInterface",
    "OCRError",
    "OcrFailure",
    "TesseractOCREngine",
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "InMemoryAuditStorage",
    "InMemoryReceiptImageStore",
    "InMemoryTransactionStorage",
    "NotFoundError",
    "ReceiptImageStoreInterface",
    "StorageConnectionError",
    "StorageError",
    "StorageFailure",
    "TransactionStorageInterface",
]
