"""
Keyword pattern tables for receipt field extraction.

DESIGN DECISION: The regexes are data, not code. A PatternTable is built
from keyword lists (by default from ExtractionSettings) and injected into
the extractor, so supporting a new receipt wording means adding a keyword,
not touching the extractor's control flow.

All keywords match case-insensitively and must start a word, so "Subtotal"
never triggers the "total" keyword. Total and date keywords may run
straight into their value ("TOTAL42.50") since OCR often drops the space;
a following letter still rejects the match ("Totals").
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from smallbooks.config import ExtractionSettings, get_settings

# Amount: plain digits or comma-grouped thousands, at most two fraction digits
AMOUNT_TOKEN = r"\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?"

# D{1,2}[-/]D{1,2}[-/]D{2,4} or D{4}[-/]D{1,2}[-/]D{1,2}
DATE_TOKEN = r"\d{1,2}[-/]\d{1,2}[-/]\d{2,4}|\d{4}[-/]\d{1,2}[-/]\d{1,2}"

DEFAULT_TOTAL_KEYWORDS = ("total", "amount", "sum", "balance")
DEFAULT_VENDOR_KEYWORDS = ("from", "vendor", "store", "merchant")
DEFAULT_DATE_KEYWORDS = ("purchase date", "date")


@dataclass(frozen=True)
class PatternSpec:
    """A named regex pattern with an example for documentation."""
    name: str
    pattern: str
    example: str
    flags: int = re.IGNORECASE
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))

    def search(self, text: str) -> Optional[re.Match]:
        return self.compiled.search(text)


def keyword_alternation(keywords: Iterable[str]) -> str:
    """
    Regex alternation for a keyword list.

    Longer keywords go first so "purchase date" wins over "date".
    Spaces inside a keyword match any run of whitespace.
    """
    cleaned = sorted({k.strip().lower() for k in keywords if k and k.strip()}, key=len, reverse=True)
    if not cleaned:
        raise ValueError("At least one keyword is required")
    return "|".join(r"\s+".join(re.escape(part) for part in k.split()) for k in cleaned)


@dataclass(frozen=True)
class PatternTable:
    """
    The complete set of extraction heuristics.

    total / vendor / date each capture their value in group 1.
    The vendor line bounds are exclusive.
    """
    total: PatternSpec
    vendor: PatternSpec
    date: PatternSpec
    vendor_line_min_length: int = 3
    vendor_line_max_length: int = 50

    @classmethod
    def from_keywords(
        cls,
        total_keywords: Iterable[str] = DEFAULT_TOTAL_KEYWORDS,
        vendor_keywords: Iterable[str] = DEFAULT_VENDOR_KEYWORDS,
        date_keywords: Iterable[str] = DEFAULT_DATE_KEYWORDS,
        vendor_line_min_length: int = 3,
        vendor_line_max_length: int = 50,
    ) -> "PatternTable":
        total = PatternSpec(
            name="total",
            pattern=rf"\b(?:{keyword_alternation(total_keywords)})(?![A-Za-z])[\s:]*\$?\s*({AMOUNT_TOKEN})",
            example="Total: $42.50",
        )
        # Vendor remainder stays on the keyword's own line
        vendor = PatternSpec(
            name="vendor",
            pattern=rf"\b(?:{keyword_alternation(vendor_keywords)})\b[ \t:]*([^\r\n]*)",
            example="Store: Corner Hardware",
        )
        date = PatternSpec(
            name="date",
            pattern=rf"\b(?:{keyword_alternation(date_keywords)})(?![A-Za-z])[\s:]*({DATE_TOKEN})",
            example="Date: 03/04/25",
        )
        return cls(
            total=total,
            vendor=vendor,
            date=date,
            vendor_line_min_length=vendor_line_min_length,
            vendor_line_max_length=vendor_line_max_length,
        )

    @classmethod
    def from_settings(cls, settings: Optional[ExtractionSettings] = None) -> "PatternTable":
        settings = settings or get_settings().extraction
        return cls.from_keywords(
            total_keywords=settings.total_keywords_list,
            vendor_keywords=settings.vendor_keywords_list,
            date_keywords=settings.date_keywords_list,
            vendor_line_min_length=settings.vendor_line_min_length,
            vendor_line_max_length=settings.vendor_line_max_length,
        )
