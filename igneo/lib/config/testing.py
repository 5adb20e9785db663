"""Test utilities for configuration.

This module provides helpers for overriding settings in tests. It should NOT
be imported in production code.
"""

from typing import Any

import igneo.lib.config.settings as _settings_module
from igneo.lib.config.settings import Settings, _load_settings

# Placeholder channel so settings built in tests pass validation
TEST_CHANNEL_ID = "123456"


def set_settings(settings: Settings | None) -> None:
    """Set or clear the global settings override for testing.

    Pass a Settings instance to override the global settings, or None to
    clear the override and revert to environment-based settings.

    Args:
        settings: Settings instance to use, or None to clear override.
    """
    _settings_module._settings_override = settings
    _load_settings.cache_clear()


def override_settings(**values: Any) -> Settings:
    """Build settings from field values and install them as the override.

    The channel id defaults to TEST_CHANNEL_ID unless given.

    Returns:
        The installed Settings instance.
    """
    values.setdefault("thingspeak_channel_id", TEST_CHANNEL_ID)
    settings = Settings(**values)
    set_settings(settings)
    return settings
