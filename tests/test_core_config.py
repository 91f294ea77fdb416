"""Tests for adept.core.config."""

from pathlib import Path
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from adept.core.config import Settings, get_google_oauth_credentials, get_settings


class TestGetGoogleOAuthCredentials:
    """Tests for get_google_oauth_credentials function."""

    def test_returns_credentials_when_set(self, mock_env_vars):
        # Patch load_dotenv so a developer's .env does not override the test values
        with patch("adept.core.config.load_dotenv"):
            client_id, client_secret = get_google_oauth_credentials()

        assert client_id == "test-client-id"
        assert client_secret == "test-client-secret"

    def test_raises_when_client_id_missing(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_CLIENT_ID", raising=False)
        monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "secret")

        with (
            patch("adept.core.config.load_dotenv"),
            pytest.raises(ValueError, match="GOOGLE_CLIENT_ID"),
        ):
            get_google_oauth_credentials()

    def test_raises_when_client_secret_missing(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "id")
        monkeypatch.delenv("GOOGLE_CLIENT_SECRET", raising=False)

        with (
            patch("adept.core.config.load_dotenv"),
            pytest.raises(ValueError, match="GOOGLE_CLIENT_SECRET"),
        ):
            get_google_oauth_credentials()

    def test_empty_value_counts_as_missing(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "")
        monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "secret")

        with patch("adept.core.config.load_dotenv"), pytest.raises(ValueError):
            get_google_oauth_credentials()


class TestSettings:
    """Tests for the Settings model."""

    def test_defaults(self, monkeypatch):
        for name in (
            "ADEPT_DATABASE_PATH",
            "ADEPT_CALENDAR_TIME_ZONE",
            "ADEPT_SYNC_INTERVAL_MINUTES",
            "ADEPT_OAUTH_REDIRECT_URI",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.database_path == Path("data/adept.db")
        assert settings.calendar_time_zone == "Europe/London"
        assert settings.sync_interval_minutes == 15
        assert settings.sync_interval_seconds == 900

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("ADEPT_CALENDAR_TIME_ZONE", "America/New_York")
        monkeypatch.setenv("ADEPT_SYNC_INTERVAL_MINUTES", "0.5")

        settings = Settings(_env_file=None)

        assert settings.time_zone == ZoneInfo("America/New_York")
        assert settings.sync_interval_seconds == 30

    def test_rejects_non_positive_interval(self, monkeypatch):
        monkeypatch.setenv("ADEPT_SYNC_INTERVAL_MINUTES", "0")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
