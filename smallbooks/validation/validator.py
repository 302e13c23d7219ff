"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking, required fields, enum membership
- Amount is non-negative with at most two fraction digits
- Description is non-empty after trimming
- Any error here raises ValidationFailure before persistence

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Absurd amount detection
- Description sanity checks
- Produces warnings only; the owner decides

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

import mimetypes
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import PurePath
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from smallbooks.config import AppSettings, get_settings
from smallbooks.models.transaction import (
    ExtractionResult,
    TransactionDraft,
    TransactionUpdate,
    ValidationIssue,
    ValidationResult,
    utc_now,
)

# Upload formats keyed by MIME type
CONTENT_TYPE_FORMATS = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "application/pdf": "pdf",
}

_FIELD_LABELS = {
    "vendor": "Vendor name",
    "total": "Total amount",
    "occurred_at": "Receipt date",
}


class ValidationFailure(Exception):
    """Schema validation failed. Carries the offending issues."""

    def __init__(self, issues: list[ValidationIssue], message: Optional[str] = None):
        self.issues = issues
        if message is None:
            message = "; ".join(f"{i.field}: {i.message}" for i in issues) or "Validation failed"
        super().__init__(message)

    def issues_as_dicts(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]


class UploadRejectedError(Exception):
    """The uploaded file is empty, too large, or of an unsupported type."""
    pass


def issues_from_pydantic(error: ValidationError) -> list[ValidationIssue]:
    """Convert pydantic errors into ValidationIssues naming field and constraint."""
    issues = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "record"
        issues.append(ValidationIssue(
            field=loc,
            issue_type=err.get("type", "invalid"),
            message=err.get("msg", "Invalid value"),
            severity="error",
        ))
    return issues


class TransactionValidator:
    """
    Validates transaction input through a two-stage pipeline.

    Stage 1 raises; stage 2 only warns.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._settings = settings or get_settings().app
        self._clock = clock

    # -------------------------------------------------------------------------
    # Stage 1
    # -------------------------------------------------------------------------

    def _validate_schema(self, model: type, data: Any):
        """
        Stage 1: Schema validation.

        Returns the parsed model or raises ValidationFailure.
        """
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ValidationFailure(issues_from_pydantic(e)) from e

    # -------------------------------------------------------------------------
    # Stage 2
    # -------------------------------------------------------------------------

    def _validate_semantic(
        self,
        amount: Optional[Decimal],
        occurred_at: Optional[datetime],
        description: Optional[str],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Checks:
        - Date not too far in the future
        - Amount within a plausible range
        - Description contains real words

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if occurred_at is not None:
            limit = self._clock() + timedelta(days=self._settings.future_date_tolerance_days)
            if occurred_at > limit:
                issues.append(ValidationIssue(
                    field="occurred_at",
                    issue_type="future_date",
                    message=f"Transaction date {occurred_at.date()} is in the future",
                    severity="warning",
                    suggested_fix="Check the day and month order on the receipt",
                ))

        if amount is not None:
            if amount > Decimal(str(self._settings.max_transaction_amount)):
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="unusually_large",
                    message=f"Amount {amount} is unusually large",
                    severity="warning",
                    suggested_fix="Check for a misplaced decimal point",
                ))
            elif amount == 0:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="zero_amount",
                    message="Amount is zero",
                    severity="warning",
                    suggested_fix="Enter the amount from the receipt",
                ))

        if description:
            alnum = sum(1 for ch in description if ch.isalnum())
            if alnum < len(description) / 2:
                issues.append(ValidationIssue(
                    field="description",
                    issue_type="suspicious_text",
                    message="Description is mostly symbols and may be an OCR misread",
                    severity="warning",
                    suggested_fix="Please verify the description",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _result(self, issues: list[ValidationIssue], semantic_valid: bool, subject_id=None) -> ValidationResult:
        return ValidationResult(
            subject_id=subject_id,
            validated_at=self._clock(),
            schema_valid=True,
            semantic_valid=semantic_valid,
            is_valid=semantic_valid,
            issues=issues,
            warnings=[i.message for i in issues if i.severity == "warning"],
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def validate_draft(
        self,
        data: Union[TransactionDraft, dict],
    ) -> tuple[TransactionDraft, ValidationResult]:
        """
        Validate a new transaction.

        Raises:
            ValidationFailure: If stage 1 fails
        """
        draft = self._validate_schema(TransactionDraft, data)
        semantic_valid, issues = self._validate_semantic(
            draft.amount, draft.occurred_at, draft.description
        )
        return draft, self._result(issues, semantic_valid)

    def validate_update(
        self,
        data: Union[TransactionUpdate, dict],
    ) -> tuple[TransactionUpdate, ValidationResult]:
        """
        Validate a partial edit.

        Raises:
            ValidationFailure: If stage 1 fails
        """
        update = self._validate_schema(TransactionUpdate, data)
        semantic_valid, issues = self._validate_semantic(
            update.amount, update.occurred_at, update.description
        )
        return update, self._result(issues, semantic_valid)

    def review_extraction(self, extraction: ExtractionResult) -> ValidationResult:
        """
        Warnings a reviewer should see before accepting an extraction.

        Fallback values and ambiguous dates are never errors: the record
        is created as pending and the owner corrects it.
        """
        issues = []
        for field in extraction.defaulted_fields:
            label = _FIELD_LABELS.get(field, field)
            issues.append(ValidationIssue(
                field=field,
                issue_type="defaulted",
                message=f"{label} could not be read from the receipt; a default was used",
                severity="warning",
                suggested_fix=f"Enter the {label.lower()} manually",
            ))
        if extraction.date_ambiguous:
            issues.append(ValidationIssue(
                field="occurred_at",
                issue_type="ambiguous_date",
                message=(
                    f"Receipt date read as {extraction.occurred_at.date()} (month first); "
                    "day and month may be swapped"
                ),
                severity="warning",
                suggested_fix="Confirm the date against the receipt",
            ))

        semantic_valid, semantic_issues = self._validate_semantic(
            extraction.total if "total" not in extraction.defaulted_fields else None,
            extraction.occurred_at if "occurred_at" not in extraction.defaulted_fields else None,
            extraction.vendor if "vendor" not in extraction.defaulted_fields else None,
        )
        return self._result(issues + semantic_issues, semantic_valid, extraction.extraction_id)

    def validate_upload(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Check an uploaded receipt before any processing.

        Returns:
            The normalized file format (e.g. "png")

        Raises:
            UploadRejectedError: If the file is empty, too large or unsupported
        """
        if not data:
            raise UploadRejectedError("Uploaded file is empty")

        if len(data) > self._settings.max_upload_size_bytes:
            raise UploadRejectedError(
                f"File too large: {len(data) / (1024 * 1024):.1f} MB "
                f"(maximum {self._settings.max_upload_size_mb} MB)"
            )

        supported = self._settings.supported_formats_list
        fmt = None
        if content_type:
            fmt = CONTENT_TYPE_FORMATS.get(content_type.split(";")[0].strip().lower())
        if fmt is None and filename:
            fmt = PurePath(filename).suffix.lstrip(".").lower() or None

        if fmt not in supported:
            raise UploadRejectedError(
                f"Unsupported file type: {content_type or filename}. "
                f"Supported: {', '.join(supported)}"
            )
        return fmt

    def guess_content_type(self, filename: str) -> str:
        guessed, _ = mimetypes.guess_type(filename)
        return guessed or "application/octet-stream"

    def summary_text(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to the owner on the review screen.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed! Please review the details below."

        lines = []

        errors = [i for i in result.issues if i.severity == "error"]
        if errors:
            lines.append("❌ Some information is invalid:")
            for issue in errors:
                lines.append(f"   • {issue.field}: {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
