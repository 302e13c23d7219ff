"""
Audit Logger

Writes AuditEvents to the structured local log and, when an audit
store is configured, persists them there too.

Persistence is best-effort: a failed write is logged and reported as
False, never raised into the calling flow. Events that belong to one
upload or edit share a correlation ID.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from smallbooks.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from smallbooks.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """Logs every event locally and persists it when an audit store is set."""

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("smallbooks.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit persistence must never break the main flow
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_receipt_uploaded(
        self,
        owner_id: str,
        filename: str,
        content_type: str,
        file_size: int,
        correlation_id: UUID,
    ) -> None:
        """Log receipt upload event."""
        await self.log(AuditEventBuilder.receipt_uploaded(
            owner_id=owner_id,
            filename=filename,
            content_type=content_type,
            file_size=file_size,
            correlation_id=correlation_id,
        ))

    async def log_upload_rejected(
        self,
        owner_id: str,
        filename: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.upload_rejected(
            owner_id=owner_id,
            filename=filename,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_ocr_started(
        self,
        owner_id: str,
        engine: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ocr_started(
            owner_id=owner_id,
            engine=engine,
            correlation_id=correlation_id,
        ))

    async def log_ocr_completed(
        self,
        owner_id: str,
        extraction_id: UUID,
        text_length: int,
        correlation_id: UUID,
    ) -> None:
        """Log OCR completion."""
        await self.log(AuditEventBuilder.ocr_completed(
            owner_id=owner_id,
            extraction_id=extraction_id,
            text_length=text_length,
            correlation_id=correlation_id,
        ))

    async def log_ocr_failed(
        self,
        owner_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log OCR failure."""
        await self.log(AuditEventBuilder.ocr_failed(
            owner_id=owner_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_extraction_fallback(
        self,
        owner_id: str,
        extraction_id: UUID,
        defaulted_fields: list[str],
        date_ambiguous: bool,
        correlation_id: UUID,
    ) -> None:
        """Log that an extraction used defaults or an ambiguous date."""
        await self.log(AuditEventBuilder.extraction_fallback_applied(
            owner_id=owner_id,
            extraction_id=extraction_id,
            defaulted_fields=defaulted_fields,
            date_ambiguous=date_ambiguous,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        owner_id: str,
        subject_id: Optional[UUID],
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(
            owner_id=owner_id,
            subject_id=subject_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_transaction_created(
        self,
        owner_id: str,
        transaction_id: UUID,
        kind: str,
        amount: str,
        from_receipt: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_created(
            owner_id=owner_id,
            transaction_id=transaction_id,
            kind=kind,
            amount=amount,
            from_receipt=from_receipt,
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        owner_id: str,
        transaction_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            owner_id=owner_id,
            transaction_id=transaction_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        owner_id: str,
        transaction_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            owner_id=owner_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_receipt_release_failed(
        self,
        owner_id: str,
        transaction_id: Optional[UUID],
        storage_key: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log an image that could not be removed from object storage."""
        await self.log(AuditEventBuilder.receipt_release_failed(
            owner_id=owner_id,
            transaction_id=transaction_id,
            storage_key=storage_key,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_summary_computed(
        self,
        owner_id: Optional[str],
        record_count: int,
        start_date: Optional[str],
        end_date: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.summary_computed(
            owner_id=owner_id,
            record_count=record_count,
            start_date=start_date,
            end_date=end_date,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., receipt upload).
    Pass it through all subsequent operations.
    """
    return uuid4()
