"""Unit tests for mcpbridge settings.

Covers default loading, env var overrides, TOML layering and validation for
the relay, screenshots and logging sections.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError


class TestSettings:
    """Core settings loading and override mechanics."""

    def test_default_settings_load(self, monkeypatch):
        """Settings should load without any env overrides."""
        monkeypatch.delenv("MCPBRIDGE_ENV", raising=False)
        from mcpbridge.settings import get_settings

        s = get_settings()
        assert s.env == "local"
        assert s.relay.port == 8765
        assert s.relay.request_timeout_ms == 30_000
        assert s.relay.token == ""
        assert s.has_token is False

    def test_get_settings_is_cached(self):
        from mcpbridge.settings import get_settings

        assert get_settings() is get_settings()

    def test_nested_env_var_override_double_underscore(self, monkeypatch):
        """Double-underscore nested env vars should override section fields."""
        monkeypatch.setenv("MCPBRIDGE_RELAY__PORT", "9999")
        monkeypatch.setenv("MCPBRIDGE_RELAY__REQUEST_TIMEOUT_MS", "1500")
        from mcpbridge.settings.config import Settings

        s = Settings()
        assert s.relay.port == 9999
        assert s.relay.request_timeout_ms == 1500

    def test_token_from_env(self, monkeypatch):
        monkeypatch.setenv("MCPBRIDGE_RELAY__TOKEN", "abc123")
        from mcpbridge.settings.config import Settings

        s = Settings()
        assert s.relay.token == "abc123"
        assert s.has_token is True

    def test_blank_token_does_not_count(self, monkeypatch):
        monkeypatch.setenv("MCPBRIDGE_RELAY__TOKEN", "   ")
        from mcpbridge.settings.config import Settings

        assert Settings().has_token is False

    def test_logging_format_override(self, monkeypatch):
        monkeypatch.setenv("MCPBRIDGE_LOGGING__FORMAT", "json")
        monkeypatch.setenv("MCPBRIDGE_LOGGING__LEVEL", "DEBUG")
        from mcpbridge.settings.config import Settings

        s = Settings()
        assert s.logging.format == "json"
        assert s.logging.level == "DEBUG"

    def test_screenshot_dir_default(self):
        from mcpbridge.settings.config import Settings

        assert Settings().screenshots.dir_name == ".chrome-mcp-bridge/images"


class TestSettingsValidation:
    """Invalid values are rejected at load time."""

    @pytest.mark.parametrize("value", ["0", "-5"])
    def test_non_positive_timeout_rejected(self, monkeypatch, value):
        monkeypatch.setenv("MCPBRIDGE_RELAY__REQUEST_TIMEOUT_MS", value)
        from mcpbridge.settings.config import Settings

        with pytest.raises(ValidationError):
            Settings()

    def test_unknown_log_format_rejected(self, monkeypatch):
        monkeypatch.setenv("MCPBRIDGE_LOGGING__FORMAT", "xml")
        from mcpbridge.settings.config import Settings

        with pytest.raises(ValidationError):
            Settings()


class TestTomlLayering:
    """Config files are layered default < env < local."""

    def test_env_profile_file_overrides_default(self, monkeypatch, tmp_path):
        import mcpbridge.settings.config as config

        (tmp_path / "settings.default.toml").write_text("[relay]\nport = 8765\nhost = \"127.0.0.1\"\n")
        (tmp_path / "settings.ci.toml").write_text("[relay]\nport = 9100\n")
        monkeypatch.setattr(config, "CONFIG_DIR", tmp_path)
        monkeypatch.setenv("MCPBRIDGE_ENV", "ci")

        s = config.Settings()
        assert s.env == "ci"
        assert s.relay.port == 9100
        assert s.relay.host == "127.0.0.1"

    def test_local_file_overrides_profile(self, monkeypatch, tmp_path):
        import mcpbridge.settings.config as config

        (tmp_path / "settings.default.toml").write_text("[relay]\nrequest_timeout_ms = 30000\n")
        (tmp_path / "settings.local.toml").write_text("[relay]\nrequest_timeout_ms = 5000\n")
        monkeypatch.setattr(config, "CONFIG_DIR", tmp_path)
        monkeypatch.delenv("MCPBRIDGE_ENV", raising=False)

        assert config.Settings().relay.request_timeout_ms == 5000
