"""Enumerations for the Ígneo monitor."""

from enum import StrEnum


class NotificationBackend(StrEnum):
    GMAIL = "gmail"
    SLACK = "slack"


class Unit(StrEnum):
    """Measurement units for sensor readings."""

    CELSIUS = "°C"
    PERCENT = "%"
    RAW = "raw"


class MetricName(StrEnum):
    """Numeric metrics tracked on the dashboard charts."""

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    SMOKE_LEVEL = "smoke_level"

    @property
    def unit(self) -> Unit:
        return _METRIC_UNITS[self]


_METRIC_UNITS: dict[MetricName, Unit] = {
    MetricName.TEMPERATURE: Unit.CELSIUS,
    MetricName.HUMIDITY: Unit.PERCENT,
    MetricName.SMOKE_LEVEL: Unit.RAW,
}


class HistoryFilterMode(StrEnum):
    """Which samples the incident table keeps."""

    CAUSE = "cause"  # any verdict with cause != NORMAL
    SMOKE = "smoke"  # smoke status != NORMAL only
