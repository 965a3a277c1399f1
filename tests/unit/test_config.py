"""Tests for application settings."""

from quotedesk.core.config import Settings, get_settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.app_name == "QuoteDesk"
        assert settings.database_url.startswith("sqlite")
        assert not settings.is_production

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("QUOTEDESK_ENVIRONMENT", "Production")
        monkeypatch.setenv("QUOTEDESK_SMTP_PORT", "2525")
        settings = Settings(_env_file=None)
        assert settings.is_production
        assert settings.smtp_port == 2525

    def test_approval_url(self):
        settings = Settings(_env_file=None, app_base_url="https://quotes.example.com/")
        assert settings.approval_url("abc123") == "https://quotes.example.com/cases/approval/abc123"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
