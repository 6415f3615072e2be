"""Configuration package."""

from moneytrack.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    OfflineQueueSettings,
    RetrySettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "OfflineQueueSettings",
    "RetrySettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
