"""Configuration package."""

from smallbooks.config.settings import (
    AppSettings,
    CloudinarySettings,
    ExtractionSettings,
    GoogleSheetsSettings,
    Settings,
    TesseractSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CloudinarySettings",
    "ExtractionSettings",
    "GoogleSheetsSettings",
    "Settings",
    "TesseractSettings",
    "get_settings",
    "validate_all_settings",
]
