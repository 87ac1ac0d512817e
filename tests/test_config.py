"""
Tests for settings loading.
"""

import os

import pytest
from pydantic import ValidationError

from finnan.config import AppSettings, AuthSettings, DatabaseSettings, get_settings


class TestSettings:
    """Tests for environment-driven settings."""

    def test_log_level_normalised(self):
        assert AppSettings(log_level=" debug ").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            AppSettings(log_level="chatty")

    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError):
            AuthSettings(secret="short")

    def test_database_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///tmp/other.db")
        assert DatabaseSettings().url == "sqlite:///tmp/other.db"

    def test_secret_from_environment(self):
        """conftest.py provides JWT_SECRET."""
        assert get_settings().auth.secret == os.environ["JWT_SECRET"]

    def test_dashboard_defaults(self):
        settings = AppSettings()
        assert settings.cash_history_days == 60
        assert settings.recent_transactions_limit == 5
