"""Centralized configuration for the Ígneo monitor.

This package provides:
- Enums for metrics, units, history filtering and notification backends
- Pydantic settings models for configuration
"""

from .enums import (
    HistoryFilterMode,
    MetricName,
    NotificationBackend,
    Unit,
)
from .settings import (
    AlertThresholds,
    ChannelSettings,
    DisplaySettings,
    EventBusSettings,
    GmailSettings,
    HistorySettings,
    NotificationSettings,
    PollingSettings,
    Settings,
    SlackSettings,
    get_settings,
)

__all__ = [
    # Enums
    "HistoryFilterMode",
    "MetricName",
    "NotificationBackend",
    "Unit",
    # Settings models
    "AlertThresholds",
    "ChannelSettings",
    "DisplaySettings",
    "EventBusSettings",
    "GmailSettings",
    "HistorySettings",
    "NotificationSettings",
    "PollingSettings",
    "Settings",
    "SlackSettings",
    # Functions
    "get_settings",
]
