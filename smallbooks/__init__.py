"""
Smallbooks - Receipt Extraction and Financial Summary Core

Bookkeeping core for small businesses: turns receipt photos into
transaction records and rolls those records up into summaries.

DESIGN PRINCIPLES:
1. Heuristics suggest → Human reviews → Record is verified
2. Fail early, fail visibly (OCR failures are never papered over)
3. No silent corrections - every fallback is recorded on the extraction
4. Every step must be auditable
5. Collaborators (OCR, image store, persistence) are injected and swappable
"""

__version__ = "1.0.0"
__author__ = "Smallbooks Team"
