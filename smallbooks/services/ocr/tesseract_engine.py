"""
OCR Engine using Tesseract

Tesseract runs locally, so receipts never leave the server for text
recognition. Images are decoded with Pillow and given a light
grayscale/contrast pass, which helps with faded thermal receipts.
PDF receipts are rasterized page by page with pdf2image.

This engine returns RAW TEXT only. Turning that text into vendor,
total and date is the extraction package's job.
"""

import io
from typing import Optional

import pytesseract
import structlog
from pdf2image import convert_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError
from PIL import Image, ImageEnhance, ImageOps, UnidentifiedImageError

from smallbooks.config import TesseractSettings, get_settings
from smallbooks.services.ocr.interface import (
    EngineNotStartedError,
    OCREngineInterface,
    OCRError,
    OcrFailure,
)

logger = structlog.get_logger(__name__)

PDF_MAGIC = b"%PDF"


class TesseractOCREngine(OCREngineInterface):
    """
    Tesseract-backed OCR engine.

    Each recognition runs a separate tesseract process, so concurrent
    calls from worker threads are safe.
    """

    name = "tesseract"

    def __init__(self, settings: Optional[TesseractSettings] = None):
        self._settings = settings or get_settings().tesseract
        self._started = False

    @property
    def supports_concurrency(self) -> bool:
        return True

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        if self._settings.cmd:
            pytesseract.pytesseract.tesseract_cmd = self._settings.cmd
        try:
            version = pytesseract.get_tesseract_version()
        except pytesseract.TesseractNotFoundError as e:
            raise OCRError(f"Tesseract binary not found: {e}") from e
        logger.info("ocr_engine_started", engine=self.name, version=str(version))
        self._started = True

    async def close(self) -> None:
        if self._started:
            logger.info("ocr_engine_closed", engine=self.name)
        self._started = False

    def _config(self) -> str:
        return f"--oem 3 --psm {self._settings.page_segmentation_mode}"

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """Grayscale, honor EXIF rotation, and boost contrast."""
        image = ImageOps.exif_transpose(image)
        if image.mode != "L":
            image = image.convert("L")
        return ImageEnhance.Contrast(image).enhance(2.0)

    def _load_pages(self, image_bytes: bytes) -> list[Image.Image]:
        if image_bytes.startswith(PDF_MAGIC):
            try:
                return convert_from_bytes(image_bytes, dpi=self._settings.pdf_dpi)
            except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError) as e:
                raise OcrFailure(f"Could not rasterize PDF receipt: {e}") from e

        try:
            image = Image.open(io.BytesIO(image_bytes))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise OcrFailure(f"Unreadable receipt image: {e}") from e
        return [image]

    def recognize(self, image_bytes: bytes) -> str:
        if not self._started:
            raise EngineNotStartedError("Tesseract engine used before start()")
        if not image_bytes:
            raise OcrFailure("Empty receipt file")

        pages = self._load_pages(image_bytes)
        texts = []
        for page in pages:
            try:
                texts.append(pytesseract.image_to_string(
                    self._preprocess_image(page),
                    lang=self._settings.language,
                    config=self._config(),
                    timeout=self._settings.timeout_seconds,
                ))
            except pytesseract.TesseractError as e:
                raise OcrFailure(f"Tesseract failed: {e.message}") from e
            except RuntimeError as e:
                # pytesseract signals its timeout with a bare RuntimeError
                raise OcrFailure(f"Tesseract timed out: {e}") from e

        return "\n".join(texts)
