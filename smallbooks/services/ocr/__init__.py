"""OCR services package."""

from smallbooks.services.ocr.interface import (
    EngineNotStartedError,
    OCREngineInterface,
    OCRError,
    OcrFailure,
)
from smallbooks.services.ocr.tesseract_engine import TesseractOCREngine

__all__ = [
    "EngineNotStartedError",
    "OCREngineInterface",
    "OCRError",
    "OcrFailure",
    "TesseractOCREngine",
]
