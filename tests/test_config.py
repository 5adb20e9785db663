"""Tests for the configuration module."""

from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from igneo.lib.config import (
    DisplaySettings,
    HistoryFilterMode,
    MetricName,
    NotificationBackend,
    Settings,
    Unit,
    get_settings,
)
from igneo.lib.config.testing import (
    TEST_CHANNEL_ID,
    override_settings,
    set_settings,
)


class TestSettings:
    """Tests for the flat settings and nested views."""

    @patch.dict("os.environ", {"THINGSPEAK_CHANNEL_ID": "42"}, clear=True)
    def test_default_values(self):
        settings = Settings()

        assert settings.polling.interval_sec == 5.0
        assert settings.thresholds.critical_temperature == 40.0
        assert settings.thresholds.humidity_enabled is False
        assert settings.display.smoke_display_max == 2500.0
        assert settings.display.timezone == "UTC"
        assert settings.history.results == 20
        assert settings.history.limit == 5
        assert settings.history.filter_mode == HistoryFilterMode.CAUSE
        assert settings.channel.timeout_sec == 10.0
        assert settings.eventbus.enabled is False
        assert settings.notifications.enabled is False
        assert settings.log_level == "INFO"
        assert settings.server_port == 5000

    @patch.dict(
        "os.environ",
        {
            "THINGSPEAK_CHANNEL_ID": "987",
            "THINGSPEAK_BASE_URL": "http://localhost:3000/",
            "POLL_INTERVAL_SEC": "2.5",
            "CRITICAL_TEMPERATURE": "55",
            "MIN_HUMIDITY": "20",
            "MAX_HUMIDITY": "",
            "HISTORY_RESULTS": "100",
            "HISTORY_FILTER": "smoke",
            "DISPLAY_TIMEZONE": "America/Santiago",
            "ENABLE_EVENT_BUS": "1",
        },
        clear=True,
    )
    def test_from_env(self):
        settings = Settings()

        assert settings.channel.latest_url == (
            "http://localhost:3000/channels/987/feeds/last.json"
        )
        assert settings.channel.history_url == (
            "http://localhost:3000/channels/987/feeds.json"
        )
        assert settings.polling.interval_sec == 2.5
        assert settings.thresholds.critical_temperature == 55.0
        assert settings.thresholds.min_humidity == 20.0
        assert settings.thresholds.max_humidity is None
        assert settings.thresholds.humidity_enabled is True
        assert settings.history.results == 100
        assert settings.history.filter_mode == HistoryFilterMode.SMOKE
        assert settings.display.tz == ZoneInfo("America/Santiago")
        assert settings.eventbus.enabled is True

    def test_notification_backends_trimmed(self):
        settings = Settings(
            thingspeak_channel_id="1", notification_backends=" gmail , slack "
        )
        assert settings.notifications.backends == [
            NotificationBackend.GMAIL,
            NotificationBackend.SLACK,
        ]


class TestDisplaySettings:
    def test_display_ranges(self):
        display = DisplaySettings(smoke_display_max=4000.0)

        assert display.display_range(MetricName.SMOKE_LEVEL) == (0.0, 4000.0)
        assert display.display_range(MetricName.TEMPERATURE) == (0.0, 100.0)
        assert display.display_range(MetricName.HUMIDITY) == (0.0, 100.0)

    def test_metric_units(self):
        assert MetricName.TEMPERATURE.unit == Unit.CELSIUS
        assert MetricName.HUMIDITY.unit == Unit.PERCENT


class TestGetSetSettings:
    def test_set_settings_override(self):
        custom = Settings(thingspeak_channel_id="777")
        set_settings(custom)
        assert get_settings() is custom

    def test_override_settings_uses_test_channel(self):
        settings = override_settings(history_limit=3)

        assert get_settings() is settings
        assert settings.thingspeak_channel_id == TEST_CHANNEL_ID
        assert settings.history.limit == 3

    @patch.dict("os.environ", {"THINGSPEAK_CHANNEL_ID": "55"}, clear=True)
    def test_get_settings_loads_from_env_and_caches(self):
        set_settings(None)
        settings = get_settings()

        assert settings.thingspeak_channel_id == "55"
        assert get_settings() is settings


class TestValidateSettings:
    """Tests for cross-field validation."""

    @patch.dict("os.environ", {}, clear=True)
    def test_missing_channel_fails(self):
        with pytest.raises(ValidationError, match="THINGSPEAK_CHANNEL_ID"):
            Settings()

    @patch.dict("os.environ", {}, clear=True)
    def test_mock_channel_needs_no_channel_id(self):
        assert Settings(mock_channel="1").mock_channel is True

    def test_min_humidity_not_below_max_fails(self):
        with pytest.raises(ValidationError, match="MIN_HUMIDITY"):
            Settings(thingspeak_channel_id="1", min_humidity=70, max_humidity=60)

    def test_unknown_log_level_fails(self):
        with pytest.raises(ValidationError, match="LOG_LEVEL"):
            Settings(thingspeak_channel_id="1", log_level="chatty")

    def test_log_level_is_case_insensitive(self):
        settings = Settings(thingspeak_channel_id="1", log_level="debug")
        assert settings.log_level == "debug"

    def test_unknown_timezone_fails(self):
        with pytest.raises(ValidationError, match="DISPLAY_TIMEZONE"):
            Settings(thingspeak_channel_id="1", display_timezone="Mars/Olympus")

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("poll_interval_sec", 0),
            ("history_results", 0),
            ("history_results", 8001),
            ("history_limit", 0),
            ("http_timeout_sec", -1),
            ("server_port", 0),
            ("server_port", 70000),
        ],
    )
    def test_out_of_range_values_fail(self, field, value):
        with pytest.raises(ValidationError):
            Settings(thingspeak_channel_id="1", **{field: value})

    def test_gmail_enabled_without_credentials_fails(self):
        with pytest.raises(ValidationError, match="GMAIL_SENDER"):
            Settings(
                thingspeak_channel_id="1",
                enable_notification_service=True,
                notification_backends="gmail",
            )

    def test_slack_enabled_without_webhook_fails(self):
        with pytest.raises(ValidationError, match="SLACK_WEBHOOK_URL"):
            Settings(
                thingspeak_channel_id="1",
                enable_notification_service=True,
                notification_backends="slack",
            )

    def test_unknown_backend_fails(self):
        with pytest.raises(ValidationError, match="carrier-pigeon"):
            Settings(
                thingspeak_channel_id="1",
                enable_notification_service=True,
                notification_backends="carrier-pigeon",
            )

    def test_notifications_disabled_skips_credential_check(self):
        settings = Settings(
            thingspeak_channel_id="1", notification_backends="gmail,slack"
        )
        assert settings.notifications.enabled is False

    @patch.dict("os.environ", {}, clear=True)
    def test_multiple_errors_collected(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(min_humidity=70, max_humidity=60)

        message = str(exc_info.value)
        assert "THINGSPEAK_CHANNEL_ID" in message
        assert "MIN_HUMIDITY" in message
