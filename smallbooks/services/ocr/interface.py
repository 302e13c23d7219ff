"""
OCR Engine Interface

DESIGN DECISION: The OCR engine is an explicitly constructed collaborator.
Whoever composes the application calls start() once and close() once;
the receipt processor only ever calls recognize() on a started engine.

recognize() is blocking. Callers on the event loop run it in a worker
thread, and serialize calls when supports_concurrency is False.
"""

from abc import ABC, abstractmethod


class OCRError(Exception):
    """Base exception for OCR errors."""
    pass


class OcrFailure(OCRError):
    """
    Text recognition failed or produced no text.

    Recoverable: the caller may fall back to manual entry.
    """
    pass


class EngineNotStartedError(OCRError):
    """recognize() was called before start() or after close()."""
    pass


class OCREngineInterface(ABC):
    """Image bytes in, text out."""

    name: str = "ocr"

    @property
    @abstractmethod
    def supports_concurrency(self) -> bool:
        """Whether recognize() may run on several threads at once."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """
        Acquire whatever the engine needs (binaries, workers, models).

        Raises:
            OCRError: If the engine cannot be made ready
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release engine resources. Safe to call more than once."""
        pass

    @abstractmethod
    def recognize(self, image_bytes: bytes) -> str:
        """
        Recognize all text in one receipt image or PDF.

        Args:
            image_bytes: Raw file content

        Returns:
            The recognized text, unmodified

        Raises:
            OcrFailure: If recognition fails
            EngineNotStartedError: If the engine is not started
        """
        pass
