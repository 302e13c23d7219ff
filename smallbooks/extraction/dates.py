"""
Date Normalizer

Turns a matched date substring into a calendar date.

DESIGN DECISION: This is a positional heuristic, not a locale-aware
parser. A four-digit first part means year-month-day; anything else is
read month-day-year. When a day-first reading would also have been a
valid, different date, the result is flagged ambiguous so a reviewer
can check it. Impossible dates are unknown, never clamped or wrapped.
"""

import re
from datetime import date
from typing import Optional

from smallbooks.extraction.patterns import PatternTable
from smallbooks.models.transaction import DateResolution

_SEPARATORS = re.compile(r"[-/]")


def _is_ascii_digits(part: str) -> bool:
    return part.isascii() and part.isdigit()


class DateNormalizer:
    """Parses D/M/Y-ish substrings found on receipts."""

    def __init__(self, patterns: Optional[PatternTable] = None):
        self._patterns = patterns or PatternTable.from_settings()

    @property
    def patterns(self) -> PatternTable:
        return self._patterns

    def _locate(self, text: str) -> Optional[str]:
        match = self._patterns.date.search(text)
        return match.group(1) if match else None

    def normalize(
        self,
        substring: Optional[str] = None,
        text: Optional[str] = None,
    ) -> Optional[date]:
        """
        Calendar date for the substring, or None when unknown.

        If substring is None and text is given, the substring is first
        located in text with the date pattern.
        """
        return self.resolve(substring, text).value

    def resolve(
        self,
        substring: Optional[str] = None,
        text: Optional[str] = None,
    ) -> DateResolution:
        if substring is None and text is not None:
            substring = self._locate(text)
        if not substring:
            return DateResolution()

        parts = _SEPARATORS.split(substring.strip())
        if len(parts) != 3 or not all(_is_ascii_digits(p) for p in parts):
            return DateResolution()

        first, second, third = (int(p) for p in parts)
        if len(parts[0]) == 4:
            order = "ymd"
            year, month, day = first, second, third
        else:
            order = "mdy"
            month, day, year = first, second, third

        if year < 100:
            year += 2000

        try:
            value = date(year, month, day)
        except ValueError:
            return DateResolution()

        ambiguous = order == "mdy" and month <= 12 and day <= 12 and month != day
        return DateResolution(value=value, order=order, ambiguous=ambiguous)
