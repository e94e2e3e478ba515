"""Settings package — exposes the cached ``get_settings`` accessor."""

from __future__ import annotations

from mcpbridge.settings.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
