"""
Audit Models for Smallbooks

An AuditEvent is written for each step a receipt or transaction goes
through, so an owner can follow a receipt from upload to stored record
and see any image release that did not complete.

Events are append-only: once written they are never edited or removed.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from smallbooks.models.transaction import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the receipt pipeline has its own event type.
    """
    # Receipt intake
    RECEIPT_UPLOADED = "receipt_uploaded"
    UPLOAD_REJECTED = "upload_rejected"

    # OCR processing
    OCR_STARTED = "ocr_started"
    OCR_COMPLETED = "ocr_completed"
    OCR_FAILED = "ocr_failed"
    EXTRACTION_FALLBACK_APPLIED = "extraction_fallback_applied"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Persistence
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    RECEIPT_RELEASE_FAILED = "receipt_release_failed"

    # Reporting
    SUMMARY_COMPUTED = "summary_computed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """One entry in the audit trail, scoped to an owner where one is known."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    owner_id: Optional[str] = Field(
        default=None,
        description="Account the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'receipt', 'summary')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one upload)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Factory methods with the type, severity and entity already filled in.

    Usage:
        event = AuditEventBuilder.receipt_uploaded(owner_id, filename, size, cid)
        event = AuditEventBuilder.transaction_deleted(owner_id, txn_id, cid)
    """

    @staticmethod
    def receipt_uploaded(
        owner_id: str,
        filename: str,
        content_type: str,
        file_size: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            owner_id=owner_id,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Receipt uploaded: {filename}",
            details={
                "filename": filename,
                "content_type": content_type,
                "file_size_bytes": file_size,
            },
            is_user_action=True,
        )

    @staticmethod
    def upload_rejected(
        owner_id: str,
        filename: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_REJECTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Upload rejected: {filename}",
            error_message=reason,
            details={"filename": filename},
            is_user_action=True,
        )

    @staticmethod
    def ocr_started(
        owner_id: str,
        engine: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCR_STARTED,
            owner_id=owner_id,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"OCR started with {engine}",
            details={"engine": engine},
        )

    @staticmethod
    def ocr_completed(
        owner_id: str,
        extraction_id: UUID,
        text_length: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCR_COMPLETED,
            owner_id=owner_id,
            entity_type="extraction",
            entity_id=extraction_id,
            correlation_id=correlation_id,
            description=f"OCR completed ({text_length} characters)",
            details={"text_length": text_length},
        )

    @staticmethod
    def ocr_failed(
        owner_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCR_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="receipt",
            correlation_id=correlation_id,
            description="OCR failed, manual entry required",
            error_message=error_message,
        )

    @staticmethod
    def extraction_fallback_applied(
        owner_id: str,
        extraction_id: UUID,
        defaulted_fields: list[str],
        date_ambiguous: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FALLBACK_APPLIED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="extraction",
            entity_id=extraction_id,
            correlation_id=correlation_id,
            description="Extraction needs review",
            details={
                "defaulted_fields": defaulted_fields,
                "date_ambiguous": date_ambiguous,
            },
        )

    @staticmethod
    def validation_failed(
        owner_id: str,
        subject_id: Optional[UUID],
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=subject_id,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def transaction_created(
        owner_id: str,
        transaction_id: UUID,
        kind: str,
        amount: str,
        from_receipt: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction created: {kind} {amount}",
            details={
                "kind": kind,
                "amount": amount,
                "from_receipt": from_receipt,
            },
            is_user_action=not from_receipt,
        )

    @staticmethod
    def transaction_updated(
        owner_id: str,
        transaction_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction updated: {', '.join(changed_fields) or 'no changes'}",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        owner_id: str,
        transaction_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def receipt_release_failed(
        owner_id: str,
        transaction_id: Optional[UUID],
        storage_key: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_RELEASE_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Receipt image could not be released: {storage_key}",
            error_message=error_message,
            details={"storage_key": storage_key},
        )

    @staticmethod
    def summary_computed(
        owner_id: Optional[str],
        record_count: int,
        start_date: Optional[str],
        end_date: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_COMPUTED,
            owner_id=owner_id,
            entity_type="summary",
            correlation_id=correlation_id,
            description=f"Summary computed over {record_count} records",
            details={
                "record_count": record_count,
                "start_date": start_date,
                "end_date": end_date,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
