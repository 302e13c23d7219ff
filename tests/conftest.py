"""
Shared fixtures and fakes.

No test talks to Tesseract, Cloudinary or Google Sheets: the OCR engine
is a fake that returns canned text, and storage is in-memory.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from smallbooks.audit import AuditLogger
from smallbooks.config import AppSettings
from smallbooks.extraction import (
    DateNormalizer,
    FieldExtractor,
    PatternTable,
    ReceiptProcessor,
)
from smallbooks.models.transaction import (
    TransactionCategory,
    TransactionKind,
    TransactionRecord,
)
from smallbooks.services.ocr import OCREngineInterface
from smallbooks.services.storage import (
    InMemoryAuditStorage,
    InMemoryReceiptImageStore,
    InMemoryTransactionStorage,
    StorageError,
    StorageFailure,
)
from smallbooks.validation import TransactionValidator

FIXED_NOW = datetime(2025, 6, 15, 12, 30, tzinfo=timezone.utc)

# Minimal PNG header; the fake engine never decodes it
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeOCREngine(OCREngineInterface):
    """Returns canned text and records every call."""

    name = "fake"

    def __init__(self, text: str = "", error: Exception = None, concurrent: bool = False):
        self.text = text
        self.error = error
        self.calls: list[bytes] = []
        self.started = False
        self._concurrent = concurrent

    @property
    def supports_concurrency(self) -> bool:
        return self._concurrent

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.started = False

    def recognize(self, image_bytes: bytes) -> str:
        self.calls.append(image_bytes)
        if self.error is not None:
            raise self.error
        return self.text


class FailingReleaseImageStore(InMemoryReceiptImageStore):
    """Stores fine, but every delete fails."""

    async def delete(self, storage_key: str) -> None:
        raise StorageFailure("object store unavailable")


class FailingCreateStorage(InMemoryTransactionStorage):
    """Every create fails."""

    async def create(self, record):
        raise StorageError("sheet is read-only")


def clock():
    return FIXED_NOW


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def app_settings():
    return AppSettings(_env_file=None)


@pytest.fixture
def patterns():
    return PatternTable.from_keywords()


@pytest.fixture
def validator(app_settings):
    return TransactionValidator(settings=app_settings, clock=clock)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def storage():
    return InMemoryTransactionStorage()


@pytest.fixture
def image_store():
    return InMemoryReceiptImageStore()


@pytest.fixture
def make_processor(app_settings, patterns):
    """Build a ReceiptProcessor around a fake engine."""

    def _make(engine: OCREngineInterface) -> ReceiptProcessor:
        return ReceiptProcessor(
            engine,
            extractor=FieldExtractor(patterns),
            normalizer=DateNormalizer(patterns),
            settings=app_settings,
            clock=clock,
        )

    return _make


@pytest.fixture
def make_record():
    """Factory for TransactionRecords with sensible defaults."""

    def _make(
        amount="10.00",
        kind=TransactionKind.EXPENSE,
        category=TransactionCategory.OTHER,
        occurred_at=FIXED_NOW,
        owner_id="acme",
        description="Test",
    ) -> TransactionRecord:
        return TransactionRecord(
            owner_id=owner_id,
            kind=kind,
            amount=Decimal(amount),
            description=description,
            category=category,
            occurred_at=occurred_at,
        )

    return _make
