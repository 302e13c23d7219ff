"""
Tests for the two-stage validator.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import FIXED_NOW
from smallbooks.models.transaction import (
    ExtractionResult,
    TransactionDraft,
    TransactionKind,
    TransactionStatus,
)
from smallbooks.validation import (
    UploadRejectedError,
    ValidationFailure,
)


def _draft(**overrides) -> dict:
    data = {
        "kind": "expense",
        "amount": "24.99",
        "description": "Printer paper",
        "category": "inventory",
        "occurred_at": FIXED_NOW,
    }
    data.update(overrides)
    return data


def _issue_types(error: ValidationFailure) -> dict:
    return {issue.field: issue.issue_type for issue in error.issues}


class TestSchemaStage:
    """Tests for stage 1: schema validation."""

    def test_valid_draft(self, validator):
        draft, result = validator.validate_draft(_draft())

        assert isinstance(draft, TransactionDraft)
        assert draft.kind == TransactionKind.EXPENSE
        assert draft.amount == Decimal("24.99")
        assert draft.status == TransactionStatus.PENDING
        assert result.is_valid
        assert result.warnings == []

    def test_missing_fields_are_named(self, validator):
        with pytest.raises(ValidationFailure) as exc_info:
            validator.validate_draft({"kind": "expense", "category": "rent"})

        issues = _issue_types(exc_info.value)
        assert issues["amount"] == "missing"
        assert issues["description"] == "missing"

    def test_negative_amount(self, validator):
        with pytest.raises(ValidationFailure) as exc_info:
            validator.validate_draft(_draft(amount="-1.00"))

        assert _issue_types(exc_info.value) == {"amount": "greater_than_equal"}

    def test_more_than_two_fraction_digits(self, validator):
        with pytest.raises(ValidationFailure) as exc_info:
            validator.validate_draft(_draft(amount="10.005"))

        assert _issue_types(exc_info.value) == {"amount": "decimal_max_places"}

    def test_blank_description(self, validator):
        with pytest.raises(ValidationFailure) as exc_info:
            validator.validate_draft(_draft(description="   "))

        assert "description" in _issue_types(exc_info.value)

    def test_unknown_category(self, validator):
        with pytest.raises(ValidationFailure) as exc_info:
            validator.validate_draft(_draft(category="travel"))

        assert "category" in _issue_types(exc_info.value)

    def test_unknown_field_rejected(self, validator):
        with pytest.raises(ValidationFailure):
            validator.validate_draft(_draft(owner_id="someone-else"))

    def test_failure_serializes_issues(self, validator):
        with pytest.raises(ValidationFailure) as exc_info:
            validator.validate_draft(_draft(amount="-5"))

        as_dicts = exc_info.value.issues_as_dicts()
        assert as_dicts[0]["field"] == "amount"
        assert as_dicts[0]["severity"] == "error"
        assert "amount" in str(exc_info.value)

    def test_update_cannot_clear_required_field(self, validator):
        with pytest.raises(ValidationFailure):
            validator.validate_update({"amount": None})

    def test_update_can_clear_notes(self, validator):
        update, _ = validator.validate_update({"notes": None})
        assert update.changes() == {"notes": None}


class TestSemanticStage:
    """Tests for stage 2: warnings only."""

    def test_future_date_beyond_tolerance(self, validator):
        _, result = validator.validate_draft(_draft(occurred_at=FIXED_NOW + timedelta(days=30)))

        assert result.is_valid
        assert [i.issue_type for i in result.issues] == ["future_date"]

    def test_future_date_within_tolerance(self, validator):
        _, result = validator.validate_draft(_draft(occurred_at=FIXED_NOW + timedelta(days=3)))
        assert result.warnings == []

    def test_unusually_large_amount(self, validator):
        _, result = validator.validate_draft(_draft(amount="2500000.00"))
        assert [i.issue_type for i in result.issues] == ["unusually_large"]

    def test_zero_amount(self, validator):
        _, result = validator.validate_draft(_draft(amount="0"))
        assert [i.issue_type for i in result.issues] == ["zero_amount"]

    def test_symbol_heavy_description(self, validator):
        _, result = validator.validate_draft(_draft(description="#$%&*@!x"))
        assert [i.issue_type for i in result.issues] == ["suspicious_text"]

    def test_summary_text(self, validator):
        _, clean = validator.validate_draft(_draft())
        _, noisy = validator.validate_draft(_draft(amount="0"))

        assert "All checks passed" in validator.summary_text(clean)
        assert "Amount is zero" in validator.summary_text(noisy)


class TestReviewExtraction:
    """Tests for reviewing an extraction before it is trusted."""

    def test_defaulted_fields_become_warnings(self, validator):
        extraction = ExtractionResult(
            vendor="Unknown Vendor",
            total=Decimal("0"),
            occurred_at=FIXED_NOW,
            raw_text="????",
            defaulted_fields=["vendor", "total", "occurred_at"],
        )

        result = validator.review_extraction(extraction)

        assert result.is_valid
        assert result.subject_id == extraction.extraction_id
        assert [i.field for i in result.issues] == ["vendor", "total", "occurred_at"]
        assert all(i.issue_type == "defaulted" for i in result.issues)

    def test_ambiguous_date_is_flagged(self, validator):
        extraction = ExtractionResult(
            vendor="Corner Hardware",
            total=Decimal("42.50"),
            occurred_at=FIXED_NOW - timedelta(days=100),
            raw_text="Corner Hardware\nDate: 03/04/25\nTotal: $42.50",
            date_ambiguous=True,
        )

        result = validator.review_extraction(extraction)

        assert [i.issue_type for i in result.issues] == ["ambiguous_date"]


class TestUpload:
    """Tests for upload checks."""

    def test_png_accepted(self, validator):
        assert validator.validate_upload(b"data", "receipt.png", "image/png") == "png"

    def test_pdf_accepted(self, validator):
        assert validator.validate_upload(b"%PDF-1.4", "scan.pdf", "application/pdf") == "pdf"

    def test_extension_used_when_type_unknown(self, validator):
        assert validator.validate_upload(b"data", "photo.JPG", "application/octet-stream") == "jpg"

    def test_empty_file_rejected(self, validator):
        with pytest.raises(UploadRejectedError):
            validator.validate_upload(b"", "receipt.png", "image/png")

    def test_oversized_file_rejected(self, validator, app_settings):
        data = b"\x00" * (app_settings.max_upload_size_bytes + 1)
        with pytest.raises(UploadRejectedError, match="too large"):
            validator.validate_upload(data, "receipt.png", "image/png")

    def test_unsupported_type_rejected(self, validator):
        with pytest.raises(UploadRejectedError, match="Unsupported"):
            validator.validate_upload(b"GIF89a", "anim.gif", "image/gif")

    def test_guess_content_type(self, validator):
        assert validator.guess_content_type("receipt.pdf") == "application/pdf"
        assert validator.guess_content_type("noextension") == "application/octet-stream"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
