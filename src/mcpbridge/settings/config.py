"""Configuration loader for mcpbridge using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (MCPBRIDGE_* with __ for nesting)
  3. settings.local.toml
  4. settings.{env}.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("MCPBRIDGE_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "MCPBRIDGE_ENV"
DEFAULT_ENV = "local"


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class RelaySettings(BaseSettings):
    """Extension-facing WebSocket relay configuration."""

    model_config = SettingsConfigDict(env_prefix="MCPBRIDGE_RELAY__")

    host: str = "127.0.0.1"
    port: int = 8765
    token: str = ""
    request_timeout_ms: int = 30_000
    max_message_bytes: int = 32 * 1024 * 1024  # full-page screenshots are large

    @field_validator("request_timeout_ms")
    @classmethod
    def _positive_timeout(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("request_timeout_ms must be positive")
        return value


class ScreenshotSettings(BaseSettings):
    """Where saved screenshots land, relative to the caller's cwd."""

    model_config = SettingsConfigDict(env_prefix="MCPBRIDGE_SCREENSHOTS__")

    dir_name: str = ".chrome-mcp-bridge/images"


class LoggingSettings(BaseSettings):
    """Logging configuration. Output always goes to stderr."""

    model_config = SettingsConfigDict(env_prefix="MCPBRIDGE_LOGGING__")

    level: str = "INFO"
    format: Literal["text", "json"] = "text"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root mcpbridge settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="MCPBRIDGE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    debug: bool = False

    relay: RelaySettings = Field(default_factory=RelaySettings)
    screenshots: ScreenshotSettings = Field(default_factory=ScreenshotSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @property
    def has_token(self) -> bool:
        """Whether a non-blank shared secret is configured."""
        return bool(self.relay.token.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
