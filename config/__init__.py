"""
Exporter configuration.

All settings can be overridden via environment variables (or a ``.env`` file);
command-line flags take precedence over both.
"""

from __future__ import annotations

from typing import Any

from .settings_model import Settings

VERSION = Settings.model_fields["VERSION"].default
NAMESPACE = "speedtest"


def load_settings(**overrides: Any) -> Settings:
    """Build settings, letting non-None ``overrides`` win over the environment."""
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


__all__ = ["NAMESPACE", "Settings", "VERSION", "load_settings"]
