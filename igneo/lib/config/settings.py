"""Settings models and configuration loading for the Ígneo monitor."""

from functools import cached_property, lru_cache
from typing import Annotated, Any, Self
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    HttpUrl,
    SecretStr,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from igneo.lib.config.enums import (
    HistoryFilterMode,
    MetricName,
    NotificationBackend,
)

# ThingSpeak caps a feed request at 8000 entries
_THINGSPEAK_MAX_RESULTS = 8000

# Fixed chart ranges; smoke level depends on the ADC of the deployment
_PERCENT_DISPLAY_RANGE = (0.0, 100.0)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_bool(v: Any) -> bool:
    """Parse boolean from string '1'/'0' or actual bool."""
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        return v == "1"
    return bool(v)


def _empty_to_none(v: Any) -> Any:
    """Treat empty env values as unset."""
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _validate_email_or_empty(v: str) -> str:
    """Validate email format, allowing empty string."""
    if not v:
        return v
    from pydantic import validate_email

    validate_email(v)
    return v


def _validate_http_url_or_empty(v: str) -> str:
    """Validate HTTP URL format, allowing empty string."""
    if not v:
        return v
    HttpUrl(v)
    return v


_BoolFromStr = Annotated[bool, BeforeValidator(_parse_bool)]
_OptionalFloat = Annotated[float | None, BeforeValidator(_empty_to_none)]
_EmailOrEmpty = Annotated[str, AfterValidator(_validate_email_or_empty)]
_HttpUrlOrEmpty = Annotated[str, AfterValidator(_validate_http_url_or_empty)]


class ChannelSettings(BaseModel):
    """Telemetry provider settings."""

    model_config = ConfigDict(frozen=True)

    channel_id: str = ""
    base_url: str = "https://api.thingspeak.com"
    timeout_sec: float = 10.0

    @property
    def latest_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/channels/{self.channel_id}/feeds/last.json"

    @property
    def history_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/channels/{self.channel_id}/feeds.json"


class PollingSettings(BaseModel):
    """Polling service settings."""

    model_config = ConfigDict(frozen=True)

    interval_sec: float = 5.0


class AlertThresholds(BaseModel):
    """Thresholds used to classify the latest sample.

    Humidity bounds are optional; when both are unset humidity never alerts.
    """

    model_config = ConfigDict(frozen=True)

    critical_temperature: float = 40.0
    min_humidity: float | None = None
    max_humidity: float | None = None

    @property
    def humidity_enabled(self) -> bool:
        return self.min_humidity is not None or self.max_humidity is not None


class DisplaySettings(BaseModel):
    """Chart rendering settings."""

    model_config = ConfigDict(frozen=True)

    smoke_display_max: float = 2500.0
    timezone: str = "UTC"
    label_time_format: str = "%H:%M:%S"
    latitude: float = -33.4489
    longitude: float = -70.6693

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def display_range(self, metric: MetricName) -> tuple[float, float]:
        """Fixed (min, max) chart range for a metric."""
        if metric == MetricName.SMOKE_LEVEL:
            return 0.0, self.smoke_display_max
        return _PERCENT_DISPLAY_RANGE


class HistorySettings(BaseModel):
    """History window and incident table settings."""

    model_config = ConfigDict(frozen=True)

    results: int = 20
    limit: int = 5
    filter_mode: HistoryFilterMode = HistoryFilterMode.CAUSE


class GmailSettings(BaseModel):
    """Gmail notification settings."""

    model_config = ConfigDict(frozen=True)

    sender: str = ""
    recipients: str = ""  # Comma-separated list, validated separately
    username: _EmailOrEmpty = ""
    password: SecretStr = SecretStr("")
    subject: str = "Ígneo fire alarm!"


class SlackSettings(BaseModel):
    """Slack notification settings."""

    model_config = ConfigDict(frozen=True)

    webhook_url: _HttpUrlOrEmpty = ""


class NotificationSettings(BaseModel):
    """Notification service settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    backends: list[NotificationBackend] = []
    gmail: GmailSettings = GmailSettings()
    slack: SlackSettings = SlackSettings()
    max_retries: int = 3
    initial_backoff_sec: int = 2
    timeout_sec: int = 30


class EventBusSettings(BaseModel):
    """Redis event bus settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Channel
    thingspeak_channel_id: str = ""
    thingspeak_base_url: str = "https://api.thingspeak.com"
    http_timeout_sec: float = Field(default=10.0, gt=0)
    mock_channel: _BoolFromStr = False

    # Polling
    poll_interval_sec: float = Field(default=5.0, gt=0)

    # Thresholds
    critical_temperature: float = Field(default=40.0, ge=-40, le=125)
    min_humidity: _OptionalFloat = Field(default=None, ge=0, le=100)
    max_humidity: _OptionalFloat = Field(default=None, ge=0, le=100)

    # Display
    smoke_display_max: float = Field(default=2500.0, gt=0)
    display_timezone: str = "UTC"
    label_time_format: str = "%H:%M:%S"
    sensor_latitude: float = Field(default=-33.4489, ge=-90, le=90)
    sensor_longitude: float = Field(default=-70.6693, ge=-180, le=180)

    # History
    history_results: int = Field(default=20, ge=1, le=_THINGSPEAK_MAX_RESULTS)
    history_limit: int = Field(default=5, ge=1)
    history_filter: HistoryFilterMode = HistoryFilterMode.CAUSE

    # Notifications
    enable_notification_service: _BoolFromStr = False
    notification_backends: str = "gmail"
    gmail_sender: str = ""
    gmail_recipients: str = ""  # Comma-separated list
    gmail_username: _EmailOrEmpty = ""
    gmail_password: SecretStr = SecretStr("")
    slack_webhook_url: _HttpUrlOrEmpty = ""
    email_max_retries: int = Field(default=3, ge=0)
    email_initial_backoff_sec: int = Field(default=2, ge=0)
    email_timeout_sec: int = Field(default=30, ge=1)

    # Redis
    enable_event_bus: _BoolFromStr = False
    redis_url: str = "redis://localhost:6379/0"

    # Process
    log_level: str = "INFO"
    server_host: str = "0.0.0.0"
    server_port: int = Field(default=5000, ge=1, le=65535)

    @cached_property
    def channel(self) -> ChannelSettings:
        """Get telemetry channel settings as nested object."""
        return ChannelSettings(
            channel_id=self.thingspeak_channel_id,
            base_url=self.thingspeak_base_url,
            timeout_sec=self.http_timeout_sec,
        )

    @cached_property
    def polling(self) -> PollingSettings:
        """Get polling settings."""
        return PollingSettings(interval_sec=self.poll_interval_sec)

    @cached_property
    def thresholds(self) -> AlertThresholds:
        """Get alert thresholds as nested object."""
        return AlertThresholds(
            critical_temperature=self.critical_temperature,
            min_humidity=self.min_humidity,
            max_humidity=self.max_humidity,
        )

    @cached_property
    def display(self) -> DisplaySettings:
        """Get chart display settings."""
        return DisplaySettings(
            smoke_display_max=self.smoke_display_max,
            timezone=self.display_timezone,
            label_time_format=self.label_time_format,
            latitude=self.sensor_latitude,
            longitude=self.sensor_longitude,
        )

    @cached_property
    def history(self) -> HistorySettings:
        """Get history window settings."""
        return HistorySettings(
            results=self.history_results,
            limit=self.history_limit,
            filter_mode=self.history_filter,
        )

    @cached_property
    def notifications(self) -> NotificationSettings:
        """Get notification settings as nested object."""
        known = {b.value for b in NotificationBackend}
        backends = [
            NotificationBackend(b.strip())
            for b in self.notification_backends.split(",")
            if b.strip() in known
        ]
        return NotificationSettings(
            enabled=self.enable_notification_service,
            backends=backends,
            gmail=GmailSettings(
                sender=self.gmail_sender,
                recipients=self.gmail_recipients,
                username=self.gmail_username,
                password=self.gmail_password,
            ),
            slack=SlackSettings(webhook_url=self.slack_webhook_url),
            max_retries=self.email_max_retries,
            initial_backoff_sec=self.email_initial_backoff_sec,
            timeout_sec=self.email_timeout_sec,
        )

    @cached_property
    def eventbus(self) -> EventBusSettings:
        """Get event bus settings."""
        return EventBusSettings(
            enabled=self.enable_event_bus, redis_url=self.redis_url
        )

    @model_validator(mode="after")
    def validate_settings(self) -> Self:
        """Validate cross-field configuration constraints."""
        errors: list[str] = []

        if not self.mock_channel and not self.thingspeak_channel_id.strip():
            errors.append(
                "THINGSPEAK_CHANNEL_ID must be set (or enable MOCK_CHANNEL)"
            )

        if (
            self.min_humidity is not None
            and self.max_humidity is not None
            and self.min_humidity >= self.max_humidity
        ):
            errors.append(
                f"MIN_HUMIDITY ({self.min_humidity}) must be less than "
                f"MAX_HUMIDITY ({self.max_humidity})"
            )

        try:
            ZoneInfo(self.display_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(
                f"DISPLAY_TIMEZONE ({self.display_timezone}) is not a known "
                "time zone"
            )

        if self.log_level.upper() not in _LOG_LEVELS:
            errors.append(
                f"LOG_LEVEL ({self.log_level}) must be one of: "
                f"{', '.join(_LOG_LEVELS)}"
            )

        # Notification credential checks
        if self.enable_notification_service:
            backends = [
                b.strip()
                for b in self.notification_backends.split(",")
                if b.strip()
            ]
            known = {b.value for b in NotificationBackend}
            unknown = [b for b in backends if b not in known]
            if unknown:
                errors.append(
                    f"Unknown NOTIFICATION_BACKENDS: {', '.join(unknown)}"
                )

            if NotificationBackend.GMAIL in backends:
                missing = []
                if not self.gmail_sender:
                    missing.append("GMAIL_SENDER")
                if not self.gmail_recipients:
                    missing.append("GMAIL_RECIPIENTS")
                if not self.gmail_username:
                    missing.append("GMAIL_USERNAME")
                if not self.gmail_password.get_secret_value():
                    missing.append("GMAIL_PASSWORD")
                if missing:
                    errors.append(
                        f"Gmail enabled but missing: {', '.join(missing)}"
                    )

            if NotificationBackend.SLACK in backends:
                if not self.slack_webhook_url:
                    errors.append(
                        "Slack enabled but SLACK_WEBHOOK_URL is not set"
                    )

        if errors:
            raise ValueError(
                "Configuration validation failed:\n  - "
                + "\n  - ".join(errors)
            )

        return self


# Settings override for testing - allows injecting custom Settings without
# modifying environment variables or clearing the lru_cache.
_settings_override: Settings | None = None


@lru_cache(maxsize=1)
def _load_settings() -> Settings:
    """Load settings from environment (cached)."""
    return Settings()


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns the test override if set, otherwise loads from environment
    variables (cached after first load). For testing, use set_settings()
    from igneo.lib.config.testing to override.
    """
    if _settings_override is not None:
        return _settings_override
    return _load_settings()
