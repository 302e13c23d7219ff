"""Receipt text extraction package."""

from smallbooks.extraction.dates import DateNormalizer
from smallbooks.extraction.fields import FieldExtractor
from smallbooks.extraction.patterns import PatternSpec, PatternTable
from smallbooks.extraction.processor import ReceiptProcessor

__all__ = [
    "DateNormalizer",
    "FieldExtractor",
    "PatternSpec",
    "PatternTable",
    "ReceiptProcessor",
]
