"""
Main Orchestrator for Smallbooks

This module ties together all the components and defines the
end-to-end flows for:
1. Receipt Upload (file → OCR → extract → store image → pending record)
2. Transactions (create / read / edit / review / delete)
3. Summaries (stored records → grouped totals)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing persists without passing schema validation
- Records created from receipts are always PENDING until the owner reviews them
- A receipt image is never left behind by a failed upload
- Every step is audited

Releasing a stored receipt image is a compensating action: if it fails
it is logged and audited, and the flow carries on.
"""

from datetime import date
from typing import NamedTuple, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from smallbooks.audit import AuditLogger, create_correlation_id
from smallbooks.extraction import ReceiptProcessor
from smallbooks.models.summary import TransactionSummary
from smallbooks.models.transaction import (
    ExtractionResult,
    ReceiptRef,
    TransactionCategory,
    TransactionDraft,
    TransactionKind,
    TransactionRecord,
    TransactionStatus,
    TransactionUpdate,
    ValidationResult,
)
from smallbooks.queries import SummaryExecutor
from smallbooks.services.image import CloudinaryReceiptStore
from smallbooks.services.ocr import OCREngineInterface, OcrFailure, TesseractOCREngine
from smallbooks.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryReceiptImageStore,
    InMemoryTransactionStorage,
    NotFoundError,
    ReceiptImageStoreInterface,
    StorageError,
    StorageFailure,
    TransactionStorageInterface,
)
from smallbooks.validation import (
    TransactionValidator,
    UploadRejectedError,
    ValidationFailure,
    issues_from_pydantic,
)

logger = structlog.get_logger(__name__)


async def release_receipt(
    image_store: ReceiptImageStoreInterface,
    audit_logger: AuditLogger,
    owner_id: str,
    transaction_id: Optional[UUID],
    receipt_ref: ReceiptRef,
    correlation_id: UUID,
) -> bool:
    """
    Delete a stored receipt image.

    Never raises on StorageFailure: the failure is logged and audited
    and False is returned.
    """
    try:
        await image_store.delete(receipt_ref.storage_key)
        return True
    except StorageFailure as e:
        logger.error(
            "receipt_release_failed",
            owner_id=owner_id,
            storage_key=receipt_ref.storage_key,
            error=str(e),
        )
        await audit_logger.log_receipt_release_failed(
            owner_id=owner_id,
            transaction_id=transaction_id,
            storage_key=receipt_ref.storage_key,
            error_message=str(e),
            correlation_id=correlation_id,
        )
        return False


class ReceiptUploadFlow:
    """
    Orchestrates the receipt upload flow.

    Flow:
    1. Check → type and size of the upload
    2. Recognize → OCR + field extraction with fallbacks
    3. Store → original file in the receipt image store
    4. Build → pending expense record (category other, description = vendor)
    5. Validate → schema validation
    6. Persist → transaction storage

    OCR runs before the image is stored, so an unreadable receipt
    leaves nothing behind. If steps 5-6 fail, the stored image is released.
    """

    def __init__(
        self,
        processor: ReceiptProcessor,
        image_store: ReceiptImageStoreInterface,
        storage: TransactionStorageInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._processor = processor
        self._image_store = image_store
        self._storage = storage
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger or AuditLogger()

    async def upload_receipt(
        self,
        owner_id: str,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[TransactionRecord, ExtractionResult]:
        """
        Turn an uploaded receipt into a pending transaction.

        Returns:
            (created_record, extraction)

        Raises:
            UploadRejectedError: Empty, oversized or unsupported file
            OcrFailure: Text could not be recognized (fall back to manual entry)
            StorageFailure: The image could not be stored
            ValidationFailure: The extracted values violate the record schema
            StorageError: The record could not be persisted
        """
        correlation_id = correlation_id or create_correlation_id()
        content_type = content_type or self._validator.guess_content_type(filename)

        try:
            self._validator.validate_upload(data, filename, content_type)
        except UploadRejectedError as e:
            await self._audit_logger.log_upload_rejected(
                owner_id=owner_id,
                filename=filename,
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_receipt_uploaded(
            owner_id=owner_id,
            filename=filename,
            content_type=content_type,
            file_size=len(data),
            correlation_id=correlation_id,
        )

        # OCR
        await self._audit_logger.log_ocr_started(
            owner_id=owner_id,
            engine=self._processor.engine_name,
            correlation_id=correlation_id,
        )
        try:
            extraction = await self._processor.process(data)
        except OcrFailure as e:
            await self._audit_logger.log_ocr_failed(
                owner_id=owner_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_ocr_completed(
            owner_id=owner_id,
            extraction_id=extraction.extraction_id,
            text_length=len(extraction.raw_text),
            correlation_id=correlation_id,
        )
        if extraction.needs_review:
            await self._audit_logger.log_extraction_fallback(
                owner_id=owner_id,
                extraction_id=extraction.extraction_id,
                defaulted_fields=extraction.defaulted_fields,
                date_ambiguous=extraction.date_ambiguous,
                correlation_id=correlation_id,
            )

        # Keep the original file
        try:
            receipt_ref = await self._image_store.store(owner_id, data, content_type, filename)
        except StorageFailure as e:
            await self._audit_logger.log_external_service_error(
                service="receipt_image_store",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        # Build, validate and persist the pending record
        try:
            draft, _ = self._validator.validate_draft({
                "kind": TransactionKind.EXPENSE,
                "amount": extraction.total,
                "description": extraction.vendor,
                "category": TransactionCategory.OTHER,
                "occurred_at": extraction.occurred_at,
                "status": TransactionStatus.PENDING,
            })
            record = draft.to_record(
                owner_id,
                receipt_ref=receipt_ref,
                extraction=extraction,
            )
            await self._storage.create(record)
        except ValidationFailure as e:
            await self._audit_logger.log_validation_failed(
                owner_id=owner_id,
                subject_id=extraction.extraction_id,
                issues=e.issues_as_dicts(),
                correlation_id=correlation_id,
            )
            await release_receipt(
                self._image_store, self._audit_logger, owner_id, None, receipt_ref, correlation_id
            )
            raise
        except StorageError as e:
            await self._audit_logger.log_external_service_error(
                service="transaction_storage",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            await release_receipt(
                self._image_store, self._audit_logger, owner_id, None, receipt_ref, correlation_id
            )
            raise

        await self._audit_logger.log_transaction_created(
            owner_id=owner_id,
            transaction_id=record.id,
            kind=record.kind.value,
            amount=str(record.amount),
            from_receipt=True,
            correlation_id=correlation_id,
        )
        return record, extraction

    def review(self, extraction: ExtractionResult) -> tuple[ValidationResult, str]:
        """Reviewer-facing warnings for an extraction, plus a summary message."""
        result = self._validator.review_extraction(extraction)
        return result, self._validator.summary_text(result)


class TransactionFlow:
    """
    Owner-scoped transaction management.

    Every operation takes the acting owner. Records belonging to anyone
    else are reported as not found.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        image_store: Optional[ReceiptImageStoreInterface] = None,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._image_store = image_store
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger or AuditLogger()

    async def create(
        self,
        owner_id: str,
        data: Union[TransactionDraft, dict],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[TransactionRecord, ValidationResult]:
        """
        Create a transaction by hand (no receipt, no extraction).

        Raises:
            ValidationFailure: If the input fails schema validation
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            draft, result = self._validator.validate_draft(data)
        except ValidationFailure as e:
            await self._audit_logger.log_validation_failed(
                owner_id=owner_id,
                subject_id=None,
                issues=e.issues_as_dicts(),
                correlation_id=correlation_id,
            )
            raise

        record = draft.to_record(owner_id)
        await self._storage.create(record)

        await self._audit_logger.log_transaction_created(
            owner_id=owner_id,
            transaction_id=record.id,
            kind=record.kind.value,
            amount=str(record.amount),
            from_receipt=False,
            correlation_id=correlation_id,
        )
        return record, result

    async def get(self, owner_id: str, transaction_id: UUID) -> TransactionRecord:
        """
        Raises:
            NotFoundError: If absent or owned by someone else
        """
        record = await self._storage.find(owner_id, transaction_id)
        if record is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return record

    async def list(
        self,
        owner_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[TransactionRecord]:
        return await self._storage.list_for_owner(owner_id, limit=limit, offset=offset)

    async def update(
        self,
        owner_id: str,
        transaction_id: UUID,
        data: Union[TransactionUpdate, dict],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[TransactionRecord, ValidationResult]:
        """
        Apply a partial edit. The stored extraction is kept unchanged.

        Raises:
            NotFoundError: If absent or owned by someone else
            ValidationFailure: If the edit or the edited record is invalid
        """
        correlation_id = correlation_id or create_correlation_id()
        existing = await self.get(owner_id, transaction_id)

        try:
            update, result = self._validator.validate_update(data)
            changes = update.changes()
            try:
                updated = existing.with_changes(changes)
            except ValidationError as e:
                raise ValidationFailure(issues_from_pydantic(e)) from e
        except ValidationFailure as e:
            await self._audit_logger.log_validation_failed(
                owner_id=owner_id,
                subject_id=transaction_id,
                issues=e.issues_as_dicts(),
                correlation_id=correlation_id,
            )
            raise

        await self._storage.update(updated)
        await self._audit_logger.log_transaction_updated(
            owner_id=owner_id,
            transaction_id=transaction_id,
            changed_fields=sorted(changes),
            correlation_id=correlation_id,
        )
        return updated, result

    async def set_status(
        self,
        owner_id: str,
        transaction_id: UUID,
        status: TransactionStatus,
        correlation_id: Optional[UUID] = None,
    ) -> TransactionRecord:
        """Record the owner's review decision."""
        record, _ = await self.update(
            owner_id, transaction_id, {"status": status}, correlation_id
        )
        return record

    async def delete(
        self,
        owner_id: str,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a transaction, then release its receipt image.

        Returns:
            False if the record was deleted but its image could not be
            released, True otherwise

        Raises:
            NotFoundError: If absent or owned by someone else
        """
        correlation_id = correlation_id or create_correlation_id()
        existing = await self.get(owner_id, transaction_id)

        if not await self._storage.delete(owner_id, transaction_id):
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        await self._audit_logger.log_transaction_deleted(
            owner_id=owner_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        )

        if existing.receipt_ref is None or self._image_store is None:
            return True
        return await release_receipt(
            self._image_store,
            self._audit_logger,
            owner_id,
            transaction_id,
            existing.receipt_ref,
            correlation_id,
        )


class SummaryFlow:
    """Dashboard summaries over stored transactions."""

    def __init__(
        self,
        storage: TransactionStorageInterface,
        executor: Optional[SummaryExecutor] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._executor = executor or SummaryExecutor(storage)
        self._audit_logger = audit_logger or AuditLogger()

    async def summarize(
        self,
        owner_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> TransactionSummary:
        correlation_id = correlation_id or create_correlation_id()
        summary = await self._executor.execute(owner_id, start_date, end_date)

        await self._audit_logger.log_summary_computed(
            owner_id=owner_id,
            record_count=summary.record_count,
            start_date=start_date.isoformat() if start_date else None,
            end_date=end_date.isoformat() if end_date else None,
            correlation_id=correlation_id,
        )
        return summary


class AppComponents(NamedTuple):
    upload_flow: ReceiptUploadFlow
    transaction_flow: TransactionFlow
    summary_flow: SummaryFlow
    ocr_engine: OCREngineInterface
    sheets_client: Optional[GoogleSheetsClient]


async def create_app_components(
    use_storage: bool = True,
    ocr_engine: Optional[OCREngineInterface] = None,
) -> AppComponents:
    """
    Factory function to create and start all application components.

    Args:
        use_storage: Whether to use Google Sheets and Cloudinary.
                    Falls back to in-memory stores when False or
                    when they are not configured.
        ocr_engine: Engine to use instead of Tesseract

    Returns:
        AppComponents; pass it to shutdown_app_components when done

    Raises:
        OCRError: If the OCR engine cannot be started
    """
    sheets_client = None
    storage: TransactionStorageInterface = InMemoryTransactionStorage()
    image_store: ReceiptImageStoreInterface = InMemoryReceiptImageStore()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsTransactionStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except ValidationError as e:
            logger.warning("sheets_storage_not_configured", error=str(e))
            sheets_client = None

        try:
            image_store = CloudinaryReceiptStore()
        except ValidationError as e:
            logger.warning("cloudinary_not_configured", error=str(e))

    engine = ocr_engine or TesseractOCREngine()
    await engine.start()

    validator = TransactionValidator()
    processor = ReceiptProcessor(engine)

    return AppComponents(
        upload_flow=ReceiptUploadFlow(
            processor=processor,
            image_store=image_store,
            storage=storage,
            validator=validator,
            audit_logger=audit_logger,
        ),
        transaction_flow=TransactionFlow(
            storage=storage,
            image_store=image_store,
            validator=validator,
            audit_logger=audit_logger,
        ),
        summary_flow=SummaryFlow(storage=storage, audit_logger=audit_logger),
        ocr_engine=engine,
        sheets_client=sheets_client,
    )


async def shutdown_app_components(components: AppComponents) -> None:
    """Close the OCR engine."""
    await components.ocr_engine.close()
