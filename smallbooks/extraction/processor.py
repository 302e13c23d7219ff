"""
Receipt Processor

Image bytes → OCR engine → Field Extractor → Date Normalizer → ExtractionResult.

CRITICAL: The result is a PROPOSAL. Whenever a heuristic fails the
configured fallback is used and recorded in defaulted_fields:
- vendor      → "Unknown Vendor"
- total       → 0
- occurred_at → processing time
The raw OCR text is always attached verbatim.

The engine's start/close lifecycle belongs to the composition root.
This layer calls recognize() exactly once per receipt and never retries.
"""

import asyncio
import threading
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

import structlog

from smallbooks.config import AppSettings, get_settings
from smallbooks.extraction.dates import DateNormalizer
from smallbooks.extraction.fields import FieldExtractor
from smallbooks.extraction.patterns import PatternTable
from smallbooks.models.transaction import (
    ExtractionResult,
    start_of_day_utc,
    utc_now,
)
from smallbooks.services.ocr import EngineNotStartedError, OCREngineInterface, OcrFailure

logger = structlog.get_logger(__name__)

MAX_VENDOR_LENGTH = 500


class ReceiptProcessor:
    """
    Turns one receipt file into an ExtractionResult.

    Engines that report supports_concurrency=False are called one at a
    time, across threads and event loops. Recognition runs in a worker
    thread so the event loop stays free.
    """

    def __init__(
        self,
        engine: OCREngineInterface,
        extractor: Optional[FieldExtractor] = None,
        normalizer: Optional[DateNormalizer] = None,
        settings: Optional[AppSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._engine = engine
        patterns = None if extractor else PatternTable.from_settings()
        self._extractor = extractor or FieldExtractor(patterns)
        self._normalizer = normalizer or DateNormalizer(self._extractor.patterns)
        self._settings = settings or get_settings().app
        self._clock = clock
        self._lock: Optional[threading.Lock] = (
            None if engine.supports_concurrency else threading.Lock()
        )

    @property
    def engine_name(self) -> str:
        return self._engine.name

    async def process(self, image_bytes: bytes) -> ExtractionResult:
        """
        Recognize and extract one receipt.

        Raises:
            OcrFailure: If recognition fails or yields blank text
        """
        raw_text = await self._recognize(image_bytes)
        return self.extract_from_text(raw_text)

    def _locked_recognize(self, image_bytes: bytes) -> str:
        # Runs in the worker thread; callers may sit on different event loops
        if self._lock is None:
            return self._engine.recognize(image_bytes)
        with self._lock:
            return self._engine.recognize(image_bytes)

    async def _recognize(self, image_bytes: bytes) -> str:
        try:
            text = await asyncio.to_thread(self._locked_recognize, image_bytes)
        except (OcrFailure, EngineNotStartedError):
            raise
        except Exception as e:
            raise OcrFailure(f"{self._engine.name} failed: {e}") from e

        if text is None or not text.strip():
            raise OcrFailure("OCR produced no text")
        return text

    def extract_from_text(self, raw_text: str) -> ExtractionResult:
        """Apply extraction and fallbacks to already-recognized text."""
        now = self._clock()
        candidates = self._extractor.extract(raw_text)
        resolution = self._normalizer.resolve(candidates.date_substring)

        defaulted: list[str] = []

        vendor = candidates.vendor
        if vendor is None:
            vendor = self._settings.unknown_vendor_label
            defaulted.append("vendor")
        vendor = vendor[:MAX_VENDOR_LENGTH].rstrip()

        total = candidates.total
        if total is None:
            total = Decimal("0")
            defaulted.append("total")

        if resolution.value is not None:
            occurred_at = start_of_day_utc(resolution.value)
        else:
            occurred_at = now
            defaulted.append("occurred_at")

        result = ExtractionResult(
            extracted_at=now,
            vendor=vendor,
            total=total,
            occurred_at=occurred_at,
            raw_text=raw_text,
            defaulted_fields=defaulted,
            date_ambiguous=resolution.ambiguous,
        )
        logger.info(
            "receipt_extracted",
            extraction_id=str(result.extraction_id),
            defaulted_fields=defaulted,
            date_ambiguous=resolution.ambiguous,
        )
        return result
