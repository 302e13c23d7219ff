"""
Field Extractor

Turns raw OCR text into candidate vendor / total / date values using
the keyword patterns of a PatternTable plus a positional vendor fallback.

Pure and stateless: the same text always yields the same candidates.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

from smallbooks.extraction.patterns import PatternTable
from smallbooks.models.transaction import ExtractionCandidates


class FieldExtractor:
    """
    Keyword-driven receipt field extraction.

    Absent values are None. An empty string never stands in for "unknown".
    """

    def __init__(self, patterns: Optional[PatternTable] = None):
        self._patterns = patterns or PatternTable.from_settings()

    @property
    def patterns(self) -> PatternTable:
        return self._patterns

    def extract(self, text: str) -> ExtractionCandidates:
        return ExtractionCandidates(
            vendor=self.find_vendor(text),
            total=self.find_total(text),
            date_substring=self.find_date_substring(text),
        )

    def find_total(self, text: str) -> Optional[Decimal]:
        """First keyword-introduced amount, as a non-negative Decimal."""
        match = self._patterns.total.search(text)
        if not match:
            return None
        try:
            return Decimal(match.group(1).replace(",", ""))
        except InvalidOperation:
            return None

    def find_vendor(self, text: str) -> Optional[str]:
        """
        Keyword remainder of the line, else the first plausible line.

        A plausible line has a trimmed length strictly between the table's
        bounds and does not start with a digit.
        """
        match = self._patterns.vendor.search(text)
        if match:
            remainder = match.group(1).strip()
            if remainder:
                return remainder

        low = self._patterns.vendor_line_min_length
        high = self._patterns.vendor_line_max_length
        for line in text.splitlines():
            line = line.strip()
            if low < len(line) < high and not line[0].isdigit():
                return line
        return None

    def find_date_substring(self, text: str) -> Optional[str]:
        match = self._patterns.date.search(text)
        return match.group(1) if match else None
