"""
Tests for environment configuration.
"""

import pytest

from intellura_sdk.config import ClientSettings, ConfigurationError


class TestClientSettings:
    """Tests for ClientSettings."""

    def test_trailing_slash_is_stripped(self):
        settings = ClientSettings(api_base="https://api.intellura.test/")

        assert settings.api_base == "https://api.intellura.test"
        assert settings.login_url() == "https://api.intellura.test/auth/x/login"

    def test_referral_link_is_quoted(self):
        settings = ClientSettings(api_base="https://api.intellura.test")

        assert settings.referral_link("AB/CD") == "https://api.intellura.test/r/AB%2FCD"

    @pytest.mark.parametrize("api_base", ["", "ftp://api.intellura.test", "api.intellura.test"])
    def test_invalid_api_base(self, api_base):
        with pytest.raises(ConfigurationError):
            ClientSettings(api_base=api_base)


class TestFromEnv:
    """Tests for reading the environment."""

    def test_reads_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("INTELLURA_API_BASE", "https://staging.intellura.test/")
        monkeypatch.setenv("INTELLURA_HTTP_TIMEOUT", "3.5")
        monkeypatch.setenv("INTELLURA_HTTP_RETRIES", "0")
        monkeypatch.setenv("INTELLURA_ENGAGEMENT_WINDOW", "20")
        monkeypatch.setenv("INTELLURA_TIMER_STORE", str(tmp_path / "timers.json"))

        settings = ClientSettings.from_env()

        assert settings.api_base == "https://staging.intellura.test"
        assert settings.http_timeout == 3.5
        assert settings.http_retries == 0
        assert settings.engagement_window == 20
        assert settings.timer_store_path == str(tmp_path / "timers.json")

    def test_defaults(self, monkeypatch):
        for name in ("INTELLURA_API_BASE", "INTELLURA_PROVIDER_TIMEOUT", "INTELLURA_TIMER_STORE"):
            monkeypatch.delenv(name, raising=False)

        settings = ClientSettings.from_env()

        assert settings.api_base == "http://localhost:8000"
        assert settings.provider_timeout == 120
        assert settings.timer_store_path is None

    @pytest.mark.parametrize(
        "name,value",
        [
            ("INTELLURA_HTTP_TIMEOUT", "fast"),
            ("INTELLURA_HTTP_TIMEOUT", "-1"),
            ("INTELLURA_HTTP_RETRIES", "1.5"),
            ("INTELLURA_BANNER_TTL", "-0.1"),
        ],
    )
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError, match=name):
            ClientSettings.from_env()
