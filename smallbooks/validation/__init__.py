"""Validation package."""

from smallbooks.validation.validator import (
    TransactionValidator,
    UploadRejectedError,
    ValidationFailure,
    issues_from_pydantic,
)

__all__ = [
    "TransactionValidator",
    "UploadRejectedError",
    "ValidationFailure",
    "issues_from_pydantic",
]
