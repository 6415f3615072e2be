"""
Configuration Management for MoneyTrack

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The pure ledger functions take their thresholds as arguments; the service
layer reads them from these settings and passes them down.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Business rule thresholds for balances, credit and duplicates."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Duplicate detection
    duplicate_threshold: int = Field(
        default=60,
        ge=0,
        le=100,
        description="Minimum score (0-100) for a transaction to be reported as a duplicate"
    )
    duplicate_window_hours: int = Field(
        default=48,
        ge=1,
        description="Date proximity window for duplicate detection"
    )
    max_duplicate_matches: int = Field(
        default=3,
        ge=1,
        description="Maximum number of duplicate matches returned"
    )

    # Transaction bounds
    min_transaction_amount: Decimal = Field(
        default=Decimal("0.01"),
        gt=0,
        description="Smallest accepted transaction amount"
    )
    max_transaction_amount: Decimal = Field(
        default=Decimal("999999999999"),
        description="Largest accepted transaction amount"
    )
    max_description_length: int = Field(
        default=500,
        ge=1,
        description="Maximum transaction description length"
    )

    # Account bounds
    min_initial_balance: Decimal = Field(
        default=Decimal("-1000000000"),
        description="Lowest initial balance for savings/cash accounts"
    )
    max_initial_balance: Decimal = Field(
        default=Decimal("1000000000"),
        description="Highest initial balance for savings/cash accounts"
    )
    min_credit_limit: Decimal = Field(
        default=Decimal("1"),
        description="Lowest credit limit for credit accounts"
    )
    max_credit_limit: Decimal = Field(
        default=Decimal("1000000000"),
        description="Highest credit limit for credit accounts"
    )

    # Installments and interest
    max_annual_interest_rate: Decimal = Field(
        default=Decimal("200"),
        description="Highest effective annual rate (percent) accepted"
    )
    max_installments: int = Field(
        default=60,
        ge=1,
        description="Highest number of installments accepted"
    )

    # Number parsing
    number_locale: str = Field(
        default="es-CO",
        description="Locale whose thousands/decimal separators user amounts use"
    )


class RetrySettings(BaseSettings):
    """Retry policy for transient in-flight failures."""

    model_config = SettingsConfigDict(
        env_prefix="RETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts, including the first one"
    )
    base_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay before the first retry"
    )
    exponential_backoff: bool = Field(
        default=True,
        description="Double the delay after every failed attempt"
    )


class OfflineQueueSettings(BaseSettings):
    """Durable offline queue configuration."""

    model_config = SettingsConfigDict(
        env_prefix="OFFLINE_QUEUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    storage_path: str = Field(
        default=".moneytrack/offline_queue.json",
        description="File that persists queued operations across restarts"
    )
    max_failures: int = Field(
        default=3,
        ge=1,
        description="Consecutive replay failures before an operation waits for manual retry"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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

    # One worksheet per collection is created on demand; audit has its own
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
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )
    use_google_sheets: bool = Field(
        default=False,
        description="Persist documents to Google Sheets instead of memory"
    )


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

    # Sub-settings are loaded lazily so a missing Google Sheets
    # configuration does not block purely local use.

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def retry(self) -> RetrySettings:
        return RetrySettings()

    @property
    def offline_queue(self) -> OfflineQueueSettings:
        return OfflineQueueSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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

    for name in ("ledger", "retry", "offline_queue", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
