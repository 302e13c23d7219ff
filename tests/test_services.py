"""
Tests for the external service adapters (Tesseract, Cloudinary) and
the audit logger.

The third-party calls are monkeypatched; no binary or network is used.
"""

import io
from uuid import uuid4

import cloudinary.exceptions
import cloudinary.uploader
import pytest
import pytesseract
import pytest_asyncio
from pdf2image.exceptions import PDFPageCountError
from PIL import Image

from smallbooks.audit import AuditLogger, create_correlation_id
from smallbooks.config import CloudinarySettings, TesseractSettings
from smallbooks.models.audit import AuditEventBuilder, AuditEventType
from smallbooks.services.image import CloudinaryReceiptStore
from smallbooks.services.ocr import (
    EngineNotStartedError,
    OCRError,
    OcrFailure,
    TesseractOCREngine,
)
from smallbooks.services.ocr import tesseract_engine
from smallbooks.services.storage import InMemoryAuditStorage, StorageError, StorageFailure


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (40, 20), "white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def tesseract_calls(monkeypatch):
    calls = []

    def fake_image_to_string(image, lang=None, config=None, timeout=0):
        calls.append({"mode": image.mode, "lang": lang, "config": config, "timeout": timeout})
        return "Store: Corner Hardware\nTotal: 5.00"

    monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(pytesseract, "image_to_string", fake_image_to_string)
    return calls


@pytest_asyncio.fixture
async def started_engine(tesseract_calls):
    engine = TesseractOCREngine(TesseractSettings(page_segmentation_mode=4))
    await engine.start()
    yield engine
    await engine.close()


class TestTesseractEngine:
    """Tests for the Tesseract OCR engine."""

    def test_recognize_before_start(self):
        engine = TesseractOCREngine(TesseractSettings())
        with pytest.raises(EngineNotStartedError):
            engine.recognize(_png_bytes())

    @pytest.mark.asyncio
    async def test_missing_binary(self, monkeypatch):
        def not_found():
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(pytesseract, "get_tesseract_version", not_found)
        engine = TesseractOCREngine(TesseractSettings())

        with pytest.raises(OCRError):
            await engine.start()
        assert not engine.is_started

    @pytest.mark.asyncio
    async def test_recognize_image(self, started_engine, tesseract_calls):
        text = started_engine.recognize(_png_bytes())

        assert text == "Store: Corner Hardware\nTotal: 5.00"
        assert tesseract_calls[0]["mode"] == "L"
        assert tesseract_calls[0]["config"] == "--oem 3 --psm 4"
        assert tesseract_calls[0]["lang"] == "eng"

    @pytest.mark.asyncio
    async def test_empty_bytes(self, started_engine):
        with pytest.raises(OcrFailure):
            started_engine.recognize(b"")

    @pytest.mark.asyncio
    async def test_unreadable_image(self, started_engine):
        with pytest.raises(OcrFailure):
            started_engine.recognize(b"definitely not an image")

    @pytest.mark.asyncio
    async def test_tesseract_error(self, started_engine, monkeypatch):
        def failing(*args, **kwargs):
            raise pytesseract.TesseractError(1, "bad input")

        monkeypatch.setattr(pytesseract, "image_to_string", failing)

        with pytest.raises(OcrFailure, match="bad input"):
            started_engine.recognize(_png_bytes())

    @pytest.mark.asyncio
    async def test_pdf_pages_joined(self, started_engine, monkeypatch):
        pages = [Image.new("RGB", (10, 10)), Image.new("RGB", (10, 10))]
        monkeypatch.setattr(tesseract_engine, "convert_from_bytes", lambda data, dpi: pages)

        text = started_engine.recognize(b"%PDF-1.4 two pages")

        assert text == "Store: Corner Hardware\nTotal: 5.00\nStore: Corner Hardware\nTotal: 5.00"

    @pytest.mark.asyncio
    async def test_broken_pdf(self, started_engine, monkeypatch):
        def broken(data, dpi):
            raise PDFPageCountError("no pages")

        monkeypatch.setattr(tesseract_engine, "convert_from_bytes", broken)

        with pytest.raises(OcrFailure):
            started_engine.recognize(b"%PDF-broken")


@pytest.fixture
def cloudinary_store():
    return CloudinaryReceiptStore(CloudinarySettings(
        cloud_name="demo",
        api_key="key",
        api_secret="secret",
    ))


class TestCloudinaryReceiptStore:
    """Tests for the Cloudinary receipt image store."""

    @pytest.mark.asyncio
    async def test_store_uses_owner_folder(self, cloudinary_store, monkeypatch):
        uploads = []

        def fake_upload(data, **options):
            uploads.append(options)
            return {
                "public_id": f"{options['folder']}/{options['public_id']}",
                "secure_url": "https://res.cloudinary.com/demo/image/upload/r.png",
            }

        monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

        ref = await cloudinary_store.store("acme", b"bytes", "image/png", "r.png")

        assert uploads[0]["folder"] == "smallbooks/receipts/acme"
        assert uploads[0]["resource_type"] == "image"
        assert ref.storage_key.startswith("smallbooks/receipts/acme/")
        assert ref.retrieval_url.startswith("https://")

    @pytest.mark.asyncio
    async def test_delete_confirmed(self, cloudinary_store, monkeypatch):
        monkeypatch.setattr(cloudinary.uploader, "destroy", lambda key, **kw: {"result": "ok"})
        await cloudinary_store.delete("smallbooks/receipts/acme/abc")

    @pytest.mark.asyncio
    async def test_delete_not_found(self, cloudinary_store, monkeypatch):
        monkeypatch.setattr(cloudinary.uploader, "destroy", lambda key, **kw: {"result": "not found"})

        with pytest.raises(StorageFailure, match="not found"):
            await cloudinary_store.delete("smallbooks/receipts/acme/abc")

    @pytest.mark.asyncio
    async def test_delete_error(self, cloudinary_store, monkeypatch):
        def failing(key, **kw):
            raise cloudinary.exceptions.Error("timeout")

        monkeypatch.setattr(cloudinary.uploader, "destroy", failing)

        with pytest.raises(StorageFailure):
            await cloudinary_store.delete("smallbooks/receipts/acme/abc")


class FailingAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise StorageError("audit sheet unavailable")


class TestAuditLogger:
    """Tests for the audit logger."""

    @pytest.mark.asyncio
    async def test_persists_events(self, audit_logger, audit_storage):
        event = AuditEventBuilder.transaction_deleted("acme", uuid4(), create_correlation_id())

        assert await audit_logger.log(event) is True
        assert audit_storage.events == [event]

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_raise(self):
        logger = AuditLogger(FailingAuditStorage())
        event = AuditEventBuilder.system_error("boom", "something broke")

        assert await logger.log(event) is False

    @pytest.mark.asyncio
    async def test_local_only(self):
        event = AuditEventBuilder.system_error("boom", "something broke")
        assert await AuditLogger().log(event) is True

    @pytest.mark.asyncio
    async def test_helpers_build_typed_events(self, audit_logger, audit_storage):
        correlation_id = create_correlation_id()

        await audit_logger.log_ocr_failed("acme", "no text", correlation_id)
        await audit_logger.log_external_service_error("cloudinary", "timeout", correlation_id)

        events = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_type for e in events] == [
            AuditEventType.OCR_FAILED,
            AuditEventType.EXTERNAL_SERVICE_ERROR,
        ]

    def test_correlation_ids_are_unique(self):
        assert create_correlation_id() != create_correlation_id()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
