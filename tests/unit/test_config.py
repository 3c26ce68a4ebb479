"""
Name: Settings Unit Tests

Responsibilities:
  - Defaults match the development backend
  - Validators reject nonsensical values
  - Environment variables override defaults
"""

import pytest
from pydantic import ValidationError

from pharmeasy_client.crosscutting.config import DEFAULT_API_BASE_URL, Settings, get_settings


@pytest.mark.unit
class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("API_BASE_URL", raising=False)
        settings = Settings()

        assert settings.api_base_url == DEFAULT_API_BASE_URL
        assert settings.sos_poll_interval_seconds == 30.0
        assert settings.notification_poll_interval_seconds == 60.0
        assert settings.violation_history_size == 50
        assert settings.credential_store_path == ""

    def test_trailing_slash_is_stripped(self):
        assert Settings(api_base_url="https://api.example.com/api/").api_base_url == (
            "https://api.example.com/api"
        )

    def test_non_http_url_is_rejected(self):
        with pytest.raises(ValidationError):
            Settings(api_base_url="ftp://example.com")

    @pytest.mark.parametrize(
        "field", ["sos_poll_interval_seconds", "notification_poll_interval_seconds"]
    )
    def test_intervals_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_page_size_range(self):
        with pytest.raises(ValidationError):
            Settings(notification_page_size=500)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SOS_RADIUS_KM", "25")
        monkeypatch.setenv("APP_ENV", "production")

        settings = Settings()

        assert settings.sos_radius_km == 25.0
        assert settings.is_production() is True

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
