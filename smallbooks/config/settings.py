"""
Configuration Management for Smallbooks

Each external service reads its own env-prefixed settings class
(CLOUDINARY_, TESSERACT_, GOOGLE_SHEETS_, EXTRACTION_). The Settings
root builds them lazily, so a missing Cloudinary key does not stop
an in-memory run.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


class CloudinarySettings(BaseSettings):
    """Cloudinary receipt image storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    folder: str = Field(
        default="smallbooks/receipts",
        description="Folder receipts are uploaded under (one subfolder per owner)"
    )


class TesseractSettings(BaseSettings):
    """Tesseract OCR engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TESSERACT_",
        extra="ignore"
    )

    cmd: Optional[str] = Field(
        default=None,
        description="Path to the tesseract binary (None = use PATH)"
    )
    language: str = Field(
        default="eng",
        description="Tesseract language pack"
    )
    page_segmentation_mode: int = Field(
        default=6,
        ge=0,
        le=13,
        description="Tesseract --psm value (6 = single uniform block of text)"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Abort recognition of a single image after this many seconds"
    )
    pdf_dpi: int = Field(
        default=200,
        ge=72,
        le=600,
        description="Rasterization DPI for PDF receipts"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class ExtractionSettings(BaseSettings):
    """
    Keyword tables for the receipt field extractor.

    New receipt wordings are added here, not in the extractor's control flow.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXTRACTION_",
        extra="ignore"
    )

    total_keywords: str = Field(
        default="total,amount,sum,balance",
        description="Comma-separated keywords that introduce the receipt total"
    )
    vendor_keywords: str = Field(
        default="from,vendor,store,merchant",
        description="Comma-separated keywords that introduce the vendor name"
    )
    date_keywords: str = Field(
        default="purchase date,date",
        description="Comma-separated keywords that introduce the transaction date"
    )
    vendor_line_min_length: int = Field(
        default=3,
        ge=0,
        description="Fallback vendor line must be strictly longer than this"
    )
    vendor_line_max_length: int = Field(
        default=50,
        ge=1,
        description="Fallback vendor line must be strictly shorter than this"
    )

    @property
    def total_keywords_list(self) -> list[str]:
        return _split_csv(self.total_keywords)

    @property
    def vendor_keywords_list(self) -> list[str]:
        return _split_csv(self.vendor_keywords)

    @property
    def date_keywords_list(self) -> list[str]:
        return _split_csv(self.date_keywords)


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # File upload limits
    max_upload_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum receipt upload size in MB"
    )
    supported_upload_formats: str = Field(
        default="jpg,jpeg,png,webp,pdf",
        description="Comma-separated list of supported receipt formats"
    )

    # Dates are stored and compared in this zone
    canonical_timezone: str = Field(
        default="UTC",
        description="Canonical time zone for occurred_at and date windows"
    )

    # Extraction fallbacks
    unknown_vendor_label: str = Field(
        default="Unknown Vendor",
        min_length=1,
        description="Vendor used when no heuristic matches"
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=1000000.0,
        description="Maximum reasonable transaction amount (for sanity checking)"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        description="How many days in the future a transaction date can be"
    )

    @field_validator('canonical_timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Only UTC is supported as the canonical zone."""
        if v.upper() != "UTC":
            raise ValueError("canonical_timezone must be UTC")
        return "UTC"

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return _split_csv(self.supported_upload_formats)

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def tesseract(self) -> TesseractSettings:
        return TesseractSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def extraction(self) -> ExtractionSettings:
        return ExtractionSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("cloudinary", "tesseract", "google_sheets", "extraction", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
