"""Domain models for ThingSpeak fire-sensor samples.

A ThingSpeak record carries every value as a string:

    {"created_at": "2024-06-15T12:00:00Z", "entry_id": 42,
     "field1": "24.5", "field2": "51", "field3": "312", "field4": "NORMAL"}

field1 is the temperature in °C, field2 the relative humidity, field3 the raw
smoke sensor level and field4 the firmware's smoke classification.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from igneo.lib.exceptions import EmptyChannel, MalformedSample
from igneo.logging import get_logger

logger = get_logger("telemetry.models")

SMOKE_STATUS_NORMAL = "NORMAL"

_SAMPLE_KEYS = frozenset(
    {"entry_id", "created_at", "field1", "field2", "field3", "field4"}
)

# ThingSpeak answers "-1" for channels that never received an update
_EMPTY_CHANNEL_SENTINELS = (-1, "-1")


@dataclass(frozen=True, slots=True)
class TelemetrySample:
    """A validated reading from the fire sensor."""

    entry_id: int
    timestamp: datetime
    temperature: float
    humidity: float | None
    smoke_level: float | None
    smoke_status: str | None

    @property
    def has_smoke(self) -> bool:
        """True unless the firmware reports exactly NORMAL.

        A missing status counts as smoke: a sensor that stops reporting
        must not read as safe.
        """
        return self.smoke_status != SMOKE_STATUS_NORMAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "timestamp": self.timestamp.isoformat(),
            "epoch": int(self.timestamp.timestamp() * 1000),
            "temperature": self.temperature,
            "humidity": self.humidity,
            "smoke_level": self.smoke_level,
            "smoke_status": self.smoke_status,
        }

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> TelemetrySample:
        """Create a validated sample from a ThingSpeak record.

        Raises:
            MalformedSample: If a required field is missing or unusable.
        """
        return cls(
            entry_id=cls._validate_entry_id(raw.get("entry_id")),
            timestamp=cls._validate_timestamp(raw.get("created_at")),
            temperature=cls._validate_temperature(raw.get("field1")),
            humidity=_parse_optional_float(raw.get("field2")),
            smoke_level=_parse_optional_float(raw.get("field3")),
            smoke_status=_parse_status(raw.get("field4")),
        )

    @staticmethod
    def _validate_entry_id(value: Any) -> int:
        if isinstance(value, bool) or value is None:
            raise MalformedSample(f"entry_id must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise MalformedSample(
                f"entry_id must be an integer, got {value!r}"
            ) from None

    @staticmethod
    def _validate_timestamp(value: Any) -> datetime:
        if not isinstance(value, str) or not value:
            raise MalformedSample(
                f"created_at must be an ISO 8601 string, got {value!r}"
            )
        try:
            timestamp = datetime.fromisoformat(value)
        except ValueError:
            raise MalformedSample(
                f"created_at is not a valid timestamp: {value!r}"
            ) from None
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=UTC)
        return timestamp.astimezone(UTC)

    @staticmethod
    def _validate_temperature(value: Any) -> float:
        if value is None:
            raise MalformedSample("temperature (field1) is missing")
        temperature = _parse_optional_float(value)
        if temperature is None:
            raise MalformedSample(
                f"temperature (field1) must be numeric, got {value!r}"
            )
        return temperature


def _parse_optional_float(value: Any) -> float | None:
    """Parse a ThingSpeak field into a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed):
        return None
    return parsed


def _parse_status(value: Any) -> str | None:
    # Kept verbatim, NORMAL matching is exact and case-sensitive
    if value is None:
        return None
    return str(value)


def _is_empty_payload(raw: Any) -> bool:
    if raw is None or raw in _EMPTY_CHANNEL_SENTINELS:
        return True
    if not isinstance(raw, dict):
        return True
    return not _SAMPLE_KEYS.intersection(raw)


def validate(raw: Any) -> TelemetrySample:
    """Validate a raw latest-entry payload into a sample.

    Raises:
        EmptyChannel: If the payload holds no record at all.
        MalformedSample: If the record exists but is unusable.
    """
    if _is_empty_payload(raw):
        raise EmptyChannel(f"No record in payload: {raw!r}")
    return TelemetrySample.from_raw(raw)


def validate_window(raw: Any) -> tuple[TelemetrySample, ...]:
    """Validate a ThingSpeak feed document into an oldest-first window.

    Malformed entries are dropped so a single bad record does not hide the
    rest of the window.

    Raises:
        EmptyChannel: If the document has no feeds list.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("feeds"), list):
        raise EmptyChannel(f"No feeds in payload: {raw!r}")
    return tuple(_validate_feeds(raw["feeds"]))


def _validate_feeds(feeds: Iterable[Any]) -> Iterable[TelemetrySample]:
    for feed in feeds:
        if not isinstance(feed, dict):
            logger.warning("Skipping non-object feed entry: %r", feed)
            continue
        try:
            yield TelemetrySample.from_raw(feed)
        except MalformedSample as e:
            logger.warning(
                "Skipping malformed entry %s: %s", feed.get("entry_id"), e
            )
