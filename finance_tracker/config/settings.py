"""
Configuration Management for Finance Tracker

Every tunable lives here and is read from environment variables or
a .env file:
- where the Google Sheets data lives (GOOGLE_SHEETS_*)
- input limits and the accepted due-date window
- the default account created for new users
- goal urgency thresholds
"""

from datetime import date
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


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

    # One worksheet per record kind
    transactions_sheet_name: str = Field(default="Transactions")
    accounts_sheet_name: str = Field(default="Accounts")
    income_sources_sheet_name: str = Field(default="IncomeSources")
    goals_sheet_name: str = Field(default="Goals")
    patrimony_sheet_name: str = Field(
        default="PatrimonySnapshots",
        description="Daily total-balance snapshots"
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

    user_id: str = Field(
        default="local",
        min_length=1,
        description="Owner of the records; stores are scoped to this user"
    )

    # Input limits
    max_transaction_amount: Decimal = Field(
        default=Decimal("999999999.99"),
        gt=0,
        description="Largest amount accepted for transactions, income and goals"
    )
    max_account_balance: Decimal = Field(
        default=Decimal("999999999999.99"),
        gt=0,
        description="Largest opening balance accepted for an account"
    )
    earliest_due_date: date = Field(
        default=date(2000, 1, 1),
        description="Due dates before this are rejected"
    )
    max_due_date_years_ahead: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many years in the future a due date can be"
    )

    # Default account synthesized when the user has none
    default_account_name: str = Field(default="Conta Principal")
    default_account_color: str = Field(default="blue")
    default_account_icon: str = Field(default="wallet")

    # Goal urgency thresholds
    due_soon_days: int = Field(
        default=7,
        ge=1,
        description="Goals due within this many days are 'due soon'"
    )
    at_risk_days: int = Field(
        default=30,
        ge=1,
        description="Upper bound of the 'at risk' window in days"
    )
    at_risk_progress_percent: Decimal = Field(
        default=Decimal("50"),
        ge=0,
        le=100,
        description="Goals below this progress inside the window are 'at risk'"
    )


class Settings(BaseSettings):
    """
    Entry point for all configuration sections.

    Sections are built on access, so the app still starts (on the
    in-memory store) when the Google Sheets variables are missing.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings; `get_settings.cache_clear()` forces a reload."""
    return Settings()


_SECTIONS = ("google_sheets", "app")


def validate_all_settings() -> dict[str, bool]:
    """
    Try to build every settings section.

    Returns {section: loaded_ok}, plus "<section>_error" with the
    message for each section that failed. Shown in the sidebar so the
    user knows whether changes are being saved.
    """
    settings = get_settings()
    results = {}
    for section in _SECTIONS:
        try:
            getattr(settings, section)
        except Exception as e:
            results[section] = False
            results[f"{section}_error"] = str(e)
        else:
            results[section] = True
    return results
