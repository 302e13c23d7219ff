"""Data models package."""

from smallbooks.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from smallbooks.models.summary import (
    CategoryTotal,
    SummaryFilter,
    TransactionSummary,
    TypeTotal,
)
from smallbooks.models.transaction import (
    DateResolution,
    ExtractionCandidates,
    ExtractionResult,
    ReceiptRef,
    TransactionCategory,
    TransactionDraft,
    TransactionKind,
    TransactionRecord,
    TransactionStatus,
    TransactionUpdate,
    ValidationIssue,
    ValidationResult,
    as_utc,
    start_of_day_utc,
    utc_now,
)

__all__ = [
    # Transaction models
    "TransactionKind",
    "TransactionCategory",
    "TransactionStatus",
    "ReceiptRef",
    "ExtractionCandidates",
    "DateResolution",
    "ExtractionResult",
    "TransactionDraft",
    "TransactionUpdate",
    "TransactionRecord",
    "ValidationIssue",
    "ValidationResult",
    "utc_now",
    "as_utc",
    "start_of_day_utc",
    # Summary models
    "SummaryFilter",
    "TypeTotal",
    "CategoryTotal",
    "TransactionSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
