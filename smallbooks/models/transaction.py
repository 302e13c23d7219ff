"""
Core Data Models for Smallbooks

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: All timestamps are timezone-aware and normalized to UTC.
UTC is the single canonical zone for storage and for date-window comparisons,
so a record's calendar day never depends on the server's local time.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Current time in the canonical zone."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC. Naive values are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day_utc(day: date) -> datetime:
    """Midnight UTC on the given calendar date."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


class TransactionCategory(str, Enum):
    """
    Supported transaction categories.

    DESIGN DECISION: A closed set rather than free text keeps dashboards
    consistent and makes category grouping reliable.
    Declaration order is the tie-break order for ranked category lists.
    """
    SALES = "sales"
    UTILITIES = "utilities"
    RENT = "rent"
    INVENTORY = "inventory"
    MARKETING = "marketing"
    PAYROLL = "payroll"
    MAINTENANCE = "maintenance"
    OTHER = "other"


class TransactionStatus(str, Enum):
    """
    Review status.

    Records created from a receipt always start as PENDING.
    Only the owner's review moves them to VERIFIED or REJECTED.
    """
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


# =============================================================================
# RECEIPT EXTRACTION MODELS
# =============================================================================

class ReceiptRef(BaseModel):
    """Where the original receipt image lives in object storage."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    storage_key: str = Field(
        ...,
        min_length=1,
        description="Key used to delete the stored object"
    )
    retrieval_url: str = Field(
        ...,
        min_length=1,
        description="URL the image can be fetched from"
    )


class ExtractionCandidates(BaseModel):
    """
    Raw output of the field extractor.

    Every field is optional: None means the heuristic found nothing.
    An empty string is never used to mean "unknown".
    """
    model_config = ConfigDict(frozen=True)

    vendor: Optional[str] = None
    total: Optional[Decimal] = Field(default=None, ge=0)
    date_substring: Optional[str] = None


class DateResolution(BaseModel):
    """Outcome of normalizing a date substring."""
    model_config = ConfigDict(frozen=True)

    value: Optional[date] = None
    order: Optional[str] = Field(
        default=None,
        pattern="^(ymd|mdy)$",
        description="Which positional reading was applied"
    )
    ambiguous: bool = Field(
        default=False,
        description="A day-first reading would also have been a valid, different date"
    )


class ExtractionResult(BaseModel):
    """
    Structured data extracted from one receipt.

    CRITICAL: This is PROPOSED data, NOT verified.
    Fallback values are used whenever a heuristic fails, and every
    fallback is listed in `defaulted_fields` so a reviewer can see it.

    raw_text is kept verbatim (no whitespace stripping) for audit.
    """

    extraction_id: UUID = Field(
        default_factory=uuid4,
        description="Unique ID for this extraction attempt"
    )
    extracted_at: datetime = Field(
        default_factory=utc_now,
        description="When extraction was performed"
    )

    vendor: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Best-effort vendor name"
    )
    total: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Best-effort receipt total")
    ]
    occurred_at: datetime = Field(
        ...,
        description="Receipt date at midnight UTC, or processing time if unknown"
    )
    raw_text: str = Field(
        ...,
        description="Full OCR text, unmodified"
    )

    defaulted_fields: list[str] = Field(
        default_factory=list,
        description="Fields that fell back to their default value"
    )
    date_ambiguous: bool = Field(
        default=False,
        description="Month/day order of the receipt date could not be decided"
    )

    @field_validator('occurred_at', 'extracted_at')
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def needs_review(self) -> bool:
        """True when any value is a guess rather than a match."""
        return bool(self.defaulted_fields) or self.date_ambiguous


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

_REQUIRED_FIELDS = ("kind", "amount", "description", "category", "occurred_at", "status")


class TransactionDraft(BaseModel):
    """
    User- or pipeline-supplied fields for a new transaction.

    Identity, ownership and timestamps are assigned when the draft
    becomes a TransactionRecord.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    kind: TransactionKind
    amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Amount in the book's currency")
    ]
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
    )
    category: TransactionCategory
    occurred_at: Optional[datetime] = Field(
        default=None,
        description="When it happened; defaults to creation time"
    )
    status: TransactionStatus = TransactionStatus.PENDING
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
    )

    @field_validator('occurred_at')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    def to_record(
        self,
        owner_id: str,
        receipt_ref: Optional[ReceiptRef] = None,
        extraction: Optional[ExtractionResult] = None,
        now: Optional[datetime] = None,
    ) -> "TransactionRecord":
        """Create the persisted entity for this draft."""
        now = as_utc(now) if now else utc_now()
        return TransactionRecord(
            owner_id=owner_id,
            kind=self.kind,
            amount=self.amount,
            description=self.description,
            category=self.category,
            occurred_at=self.occurred_at or now,
            receipt_ref=receipt_ref,
            extraction=extraction,
            status=self.status,
            notes=self.notes,
            created_at=now,
            updated_at=now,
        )


class TransactionUpdate(BaseModel):
    """
    A partial edit of a transaction.

    Only fields that were explicitly set are applied. Required fields
    cannot be cleared; notes can.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    kind: Optional[TransactionKind] = None
    amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    category: Optional[TransactionCategory] = None
    occurred_at: Optional[datetime] = None
    status: Optional[TransactionStatus] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode='after')
    def required_fields_not_cleared(self) -> 'TransactionUpdate':
        for name in _REQUIRED_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> dict[str, Any]:
        """Explicitly set fields only."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class TransactionRecord(BaseModel):
    """
    A bookkeeping transaction owned by exactly one account.

    id and owner_id are frozen: once created they never change.
    Every mutation goes through with_changes(), which revalidates
    the whole record and refreshes updated_at.
    """
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        frozen=True,
        description="Unique transaction ID"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        frozen=True,
        description="Owning account"
    )

    # Required business fields
    kind: TransactionKind
    amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Amount in the book's currency")
    ]
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
    )
    category: TransactionCategory
    occurred_at: datetime = Field(
        default_factory=utc_now,
        description="When the transaction happened (UTC)"
    )

    # Receipt linkage
    receipt_ref: Optional[ReceiptRef] = None
    extraction: Optional[ExtractionResult] = Field(
        default=None,
        description="OCR extraction the record was created from, kept for audit"
    )

    # Review
    status: TransactionStatus = TransactionStatus.PENDING
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
    )

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('occurred_at', 'created_at', 'updated_at')
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def occurred_on(self) -> date:
        """Calendar day of the transaction in the canonical zone."""
        return self.occurred_at.date()

    @property
    def signed_amount(self) -> Decimal:
        """Amount with expenses negative."""
        return self.amount if self.kind == TransactionKind.INCOME else -self.amount

    def with_changes(
        self,
        changes: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> "TransactionRecord":
        """
        Return a revalidated copy with `changes` applied.

        Raises:
            ValueError: If a change targets an immutable field
            pydantic.ValidationError: If the result violates a constraint
        """
        immutable = {"id", "owner_id", "created_at", "extraction"} & set(changes)
        if immutable:
            raise ValueError(f"Cannot modify immutable fields: {sorted(immutable)}")

        data = self.model_dump()
        data.update(changes)
        data["updated_at"] = as_utc(now) if now else utc_now()
        return TransactionRecord.model_validate(data)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Violated constraint (e.g., 'missing', 'greater_than_equal', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, required fields, constraints)
    Stage 2: Semantic validation (plausibility checks, warnings only)
    """

    subject_id: Optional[UUID] = Field(
        default=None,
        description="Transaction or extraction being validated"
    )
    validated_at: datetime = Field(
        default_factory=utc_now
    )

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
