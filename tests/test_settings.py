"""Tests for configuration loading."""

from datetime import date
from decimal import Decimal

import pytest

from finance_tracker.config import AppSettings, get_settings, validate_all_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestAppSettings:
    """Defaults and environment overrides."""

    def test_defaults(self):
        settings = AppSettings()
        assert settings.user_id == "local"
        assert settings.default_account_name == "Conta Principal"
        assert settings.due_soon_days == 7
        assert settings.at_risk_days == 30
        assert settings.at_risk_progress_percent == Decimal("50")
        assert settings.earliest_due_date == date(2000, 1, 1)

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("DUE_SOON_DAYS", "3")
        monkeypatch.setenv("USER_ID", "alice")
        settings = AppSettings()
        assert settings.due_soon_days == 3
        assert settings.user_id == "alice"

    def test_only_used_settings_are_read(self, monkeypatch):
        monkeypatch.setenv("DEBUG_MODE", "true")
        settings = AppSettings()
        assert not hasattr(settings, "debug_mode")
        assert "app_environment" not in AppSettings.model_fields


class TestValidateAllSettings:
    """Startup checks."""

    def test_missing_sheets_configuration_reported(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        results = validate_all_settings()
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
        assert results["app"] is True
