"""
Tests for Smallbooks models

Test strategy:
1. Unit tests for individual components (models, extraction, validators)
2. Integration tests for flows (with in-memory stores and a fake OCR engine)
3. No real Tesseract, Cloudinary or Google Sheets calls in tests
"""

import json

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from smallbooks.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from smallbooks.models.summary import SummaryFilter
from smallbooks.models.transaction import (
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
)


class TestTransactionModels:
    """Tests for transaction-related Pydantic models."""

    def test_record_creation(self, make_record):
        """Test TransactionRecord creation with defaults."""
        record = make_record(amount="42.50")
        assert record.amount == Decimal("42.50")
        assert record.status == TransactionStatus.PENDING
        assert record.receipt_ref is None
        assert record.extraction is None

    def test_record_strips_whitespace(self, make_record):
        """Test that whitespace is stripped from the description."""
        record = make_record(description="  Corner Hardware  ")
        assert record.description == "Corner Hardware"

    def test_record_rejects_negative_amount(self, make_record):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            make_record(amount="-100")

    def test_record_rejects_extra_precision(self, make_record):
        """Test that amounts carry at most two fraction digits."""
        with pytest.raises(ValidationError):
            make_record(amount="1.005")

    def test_record_rejects_blank_description(self, make_record):
        """Test that an all-whitespace description is rejected."""
        with pytest.raises(ValidationError):
            make_record(description="   ")

    def test_identity_is_frozen(self, make_record):
        """Test that id and owner_id cannot be reassigned."""
        record = make_record()
        with pytest.raises(ValidationError):
            record.id = uuid4()
        with pytest.raises(ValidationError):
            record.owner_id = "globex"

    def test_assignment_is_validated(self, make_record):
        """Test that other fields are revalidated on assignment."""
        record = make_record()
        with pytest.raises(ValidationError):
            record.amount = Decimal("-1")

    def test_naive_datetime_taken_as_utc(self, make_record):
        """Test that naive timestamps are normalized to UTC."""
        record = make_record(occurred_at=datetime(2025, 3, 4, 10, 0))
        assert record.occurred_at.tzinfo == timezone.utc
        assert record.occurred_on == date(2025, 3, 4)

    def test_offset_datetime_converted_to_utc(self, make_record):
        """Test that an offset timestamp lands on its UTC calendar day."""
        plus_ten = timezone(timedelta(hours=10))
        record = make_record(occurred_at=datetime(2025, 3, 5, 6, 0, tzinfo=plus_ten))
        assert record.occurred_on == date(2025, 3, 4)

    def test_signed_amount(self, make_record):
        """Test that expenses are negative and income positive."""
        assert make_record(amount="5.00").signed_amount == Decimal("-5.00")
        assert make_record(amount="5.00", kind=TransactionKind.INCOME).signed_amount == Decimal("5.00")

    def test_draft_to_record(self, fixed_now):
        """Test that a draft without a date takes the creation time."""
        draft = TransactionDraft(
            kind="income",
            amount="120.00",
            description="Invoice #12",
            category="sales",
        )
        record = draft.to_record("acme", now=fixed_now)
        assert record.owner_id == "acme"
        assert record.occurred_at == fixed_now
        assert record.created_at == record.updated_at == fixed_now

    def test_draft_rejects_unknown_fields(self):
        """Test that identity cannot be smuggled in through a draft."""
        with pytest.raises(ValidationError):
            TransactionDraft(
                kind="expense",
                amount="1.00",
                description="x",
                category="other",
                id=str(uuid4()),
            )


class TestRecordChanges:
    """Tests for with_changes() and TransactionUpdate."""

    def test_with_changes_returns_new_record(self, make_record, fixed_now):
        """Test that changes apply to a copy and refresh updated_at."""
        record = make_record()
        later = fixed_now + timedelta(hours=1)
        updated = record.with_changes({"amount": Decimal("12.00")}, now=later)
        assert updated.amount == Decimal("12.00")
        assert record.amount == Decimal("10.00")
        assert updated.id == record.id
        assert updated.updated_at == later

    def test_with_changes_rejects_immutable_fields(self, make_record):
        """Test that identity and creation data cannot be changed."""
        record = make_record()
        for field in ("id", "owner_id", "created_at", "extraction"):
            with pytest.raises(ValueError):
                record.with_changes({field: None})

    def test_with_changes_revalidates(self, make_record):
        """Test that an invalid change is rejected."""
        with pytest.raises(ValidationError):
            make_record().with_changes({"category": "travel"})

    def test_update_tracks_explicit_fields(self):
        """Test that only explicitly set fields are changes."""
        update = TransactionUpdate(amount="3.50", notes=None)
        assert update.changes() == {"amount": Decimal("3.50"), "notes": None}

    @pytest.mark.parametrize(
        "field", ["kind", "amount", "description", "category", "occurred_at", "status"]
    )
    def test_update_cannot_clear_required_field(self, field):
        """Test that required fields cannot be set to None."""
        with pytest.raises(ValidationError):
            TransactionUpdate(**{field: None})


class TestExtractionModels:
    """Tests for extraction results."""

    def _extraction(self, **overrides) -> ExtractionResult:
        data = {
            "vendor": "Corner Hardware",
            "total": Decimal("42.50"),
            "occurred_at": datetime(2025, 3, 4, tzinfo=timezone.utc),
            "raw_text": "  Corner Hardware\nTotal: $42.50  ",
        }
        data.update(overrides)
        return ExtractionResult(**data)

    def test_raw_text_is_not_stripped(self):
        """Test that raw OCR text is kept verbatim."""
        extraction = self._extraction()
        assert extraction.raw_text == "  Corner Hardware\nTotal: $42.50  "

    def test_needs_review(self):
        """Test the review flag for fallbacks and ambiguous dates."""
        assert self._extraction().needs_review is False
        assert self._extraction(defaulted_fields=["total"]).needs_review is True
        assert self._extraction(date_ambiguous=True).needs_review is True

    def test_receipt_ref_requires_key(self):
        """Test that a receipt reference needs a storage key."""
        with pytest.raises(ValidationError):
            ReceiptRef(storage_key="  ", retrieval_url="https://example.com/r.png")


class TestSummaryFilter:
    """Tests for the summary window."""

    def test_contains_is_inclusive(self):
        """Test that both bounds are inclusive."""
        flt = SummaryFilter(start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))
        assert flt.contains(date(2025, 1, 1))
        assert flt.contains(date(2025, 1, 31))
        assert not flt.contains(date(2025, 2, 1))

    def test_inverted_window(self):
        """Test that an inverted window is valid and matches nothing."""
        flt = SummaryFilter(start_date=date(2025, 2, 1), end_date=date(2025, 1, 1))
        assert flt.is_inverted
        assert not flt.contains(date(2025, 1, 15))


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            description="Test receipt uploaded",
        )
        assert event.event_type == AuditEventType.RECEIPT_UPLOADED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            owner_id="acme",
            description="Transaction created",
            details={"kind": "expense", "amount": "42.50"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_created"
        assert log_dict["owner_id"] == "acme"
        assert log_dict["details"]["amount"] == "42.50"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            owner_id="acme",
            description="Transaction updated",
            details={"changed_fields": ["amount"]},
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12  # Expected number of columns
        assert row[2] == "transaction_updated"  # event_type
        assert row[4] == "acme"  # owner_id
        assert json.loads(row[9]) == {"changed_fields": ["amount"]}
        assert row[11] == "True"  # is_user_action

    def test_audit_event_builder_receipt_uploaded(self):
        """Test AuditEventBuilder.receipt_uploaded."""
        correlation_id = uuid4()

        event = AuditEventBuilder.receipt_uploaded(
            owner_id="acme",
            filename="test.jpg",
            content_type="image/jpeg",
            file_size=1024,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.RECEIPT_UPLOADED
        assert event.correlation_id == correlation_id
        assert event.details["file_size_bytes"] == 1024
        assert event.is_user_action is True

    def test_audit_event_builder_receipt_release_failed(self):
        """Test that a failed image release is an error event."""
        transaction_id = uuid4()

        event = AuditEventBuilder.receipt_release_failed(
            owner_id="acme",
            transaction_id=transaction_id,
            storage_key="smallbooks/acme/abc",
            error_message="timeout",
            correlation_id=uuid4(),
        )

        assert event.event_type == AuditEventType.RECEIPT_RELEASE_FAILED
        assert event.severity == AuditSeverity.ERROR
        assert event.entity_id == transaction_id
        assert event.details["storage_key"] == "smallbooks/acme/abc"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            subject_id=uuid4(),
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="occurred_at",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0


class TestTransactionCategories:
    """Tests for transaction category enum."""

    def test_all_categories_exist(self):
        """Test that expected categories exist."""
        expected = [
            "sales", "utilities", "rent", "inventory",
            "marketing", "payroll", "maintenance", "other",
        ]
        for cat in expected:
            assert TransactionCategory(cat) is not None

    def test_declaration_order(self):
        """Test that declaration order is stable for tie-breaking."""
        assert list(TransactionCategory)[0] == TransactionCategory.SALES
        assert list(TransactionCategory)[-1] == TransactionCategory.OTHER


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
