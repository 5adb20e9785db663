"""Alert classification and alarm signalling.

classify() turns the latest sample into an AlertVerdict. It is a pure
function: no state, no side effects, callable at any rate.

AlarmSignal sits downstream of the classifier and converts the stream of
verdicts into an edge-triggered alarm: callbacks run only when the alarm
turns on or off (to prevent notification spam and repeated sirens).
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from igneo.lib.config import AlertThresholds
from igneo.logging import get_logger
from igneo.telemetry.models import TelemetrySample

logger = get_logger("lib.alerts")


class AlertCause(StrEnum):
    """Why an alert is active, in decreasing priority."""

    SMOKE_AND_TEMPERATURE = "smoke_and_temperature"
    SMOKE = "smoke"
    TEMPERATURE = "temperature"
    NORMAL = "normal"

    @property
    def label(self) -> str:
        return _CAUSE_LABELS[self]


_CAUSE_LABELS: dict[AlertCause, str] = {
    AlertCause.SMOKE_AND_TEMPERATURE: "Smoke and high temperature",
    AlertCause.SMOKE: "Smoke detected",
    AlertCause.TEMPERATURE: "High temperature",
    AlertCause.NORMAL: "Normal",
}


@dataclass(frozen=True, slots=True)
class AlertVerdict:
    """Alert classification of a single sample."""

    temperature_alert: bool
    smoke_alert: bool
    humidity_alert: bool
    cause: AlertCause

    @property
    def is_active(self) -> bool:
        """Whether a safety-critical cause is active (humidity excluded)."""
        return self.cause != AlertCause.NORMAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "temperature_alert": self.temperature_alert,
            "smoke_alert": self.smoke_alert,
            "humidity_alert": self.humidity_alert,
            "cause": self.cause.value,
            "label": self.cause.label,
            "is_active": self.is_active,
        }


def _resolve_cause(smoke_alert: bool, temperature_alert: bool) -> AlertCause:
    if smoke_alert and temperature_alert:
        return AlertCause.SMOKE_AND_TEMPERATURE
    if smoke_alert:
        return AlertCause.SMOKE
    if temperature_alert:
        return AlertCause.TEMPERATURE
    return AlertCause.NORMAL


def _is_humidity_alert(
    humidity: float | None, thresholds: AlertThresholds
) -> bool:
    if humidity is None:
        return False
    if thresholds.min_humidity is not None and humidity < thresholds.min_humidity:
        return True
    return (
        thresholds.max_humidity is not None
        and humidity > thresholds.max_humidity
    )


def classify(
    sample: TelemetrySample, thresholds: AlertThresholds
) -> AlertVerdict:
    """Classify a sample against the alert thresholds.

    Comparisons are strict: a temperature equal to the critical value is not
    an alert. Humidity is reported separately and never changes the cause.
    """
    temperature_alert = sample.temperature > thresholds.critical_temperature
    smoke_alert = sample.has_smoke
    return AlertVerdict(
        temperature_alert=temperature_alert,
        smoke_alert=smoke_alert,
        humidity_alert=_is_humidity_alert(sample.humidity, thresholds),
        cause=_resolve_cause(smoke_alert, temperature_alert),
    )


@dataclass(frozen=True, slots=True)
class AlarmEvent:
    """Details about an alarm state transition."""

    is_active: bool
    cause: AlertCause
    entry_id: int
    temperature: float
    smoke_status: str | None
    recording_time: datetime

    @property
    def is_resolved(self) -> bool:
        return not self.is_active


type AlarmCallback = Callable[[AlarmEvent], None]


class AlarmSignal:
    """Edge-triggered alarm derived from successive verdicts.

    Only the single event-loop writer (the poller) calls update(); callbacks
    are invoked synchronously on that loop.
    """

    def __init__(self) -> None:
        self._active = False
        self._cause = AlertCause.NORMAL
        self._last_entry_id: int | None = None
        self._callbacks: list[AlarmCallback] = []

    @property
    def active(self) -> bool:
        return self._active

    @property
    def cause(self) -> AlertCause:
        return self._cause

    @property
    def callback_count(self) -> int:
        return len(self._callbacks)

    def register_callback(self, callback: AlarmCallback) -> Callable[[], None]:
        """Register a callback for alarm transitions.

        Returns:
            A function that unregisters the callback.
        """
        self._callbacks.append(callback)
        logger.debug("Registered alarm callback %s", callback)

        def unregister() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unregister

    def update(
        self, sample: TelemetrySample, verdict: AlertVerdict
    ) -> AlarmEvent | None:
        """Feed a new verdict; return the event if the alarm toggled."""
        if sample.entry_id == self._last_entry_id:
            return None
        self._last_entry_id = sample.entry_id

        previous_active = self._active
        if verdict.is_active and verdict.cause != self._cause and previous_active:
            logger.info(
                "Alarm cause changed: %s -> %s", self._cause, verdict.cause
            )
        self._active = verdict.is_active
        self._cause = verdict.cause

        if previous_active == verdict.is_active:
            return None

        event = AlarmEvent(
            is_active=verdict.is_active,
            cause=verdict.cause,
            entry_id=sample.entry_id,
            temperature=sample.temperature,
            smoke_status=sample.smoke_status,
            recording_time=sample.timestamp,
        )
        if event.is_active:
            logger.warning(
                "Alarm raised: %s (entry %d, %.1f°C, smoke=%s)",
                event.cause.label,
                event.entry_id,
                event.temperature,
                event.smoke_status,
            )
        else:
            logger.info("Alarm cleared at entry %d", event.entry_id)

        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                logger.exception("Alarm callback %s failed", callback)
        return event
