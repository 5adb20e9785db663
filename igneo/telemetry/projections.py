"""Read-model projections over the telemetry window.

Both projections are pure functions of their inputs and never mutate the
window they are given.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, tzinfo
from enum import StrEnum
from typing import Any

from igneo.lib.alerts import AlertCause, classify
from igneo.lib.config import AlertThresholds, DisplaySettings, MetricName
from igneo.telemetry.models import TelemetrySample

type FieldSelector = Callable[[TelemetrySample], float | None]

METRIC_SELECTORS: dict[MetricName, FieldSelector] = {
    MetricName.TEMPERATURE: lambda s: s.temperature,
    MetricName.HUMIDITY: lambda s: s.humidity,
    MetricName.SMOKE_LEVEL: lambda s: s.smoke_level,
}


@dataclass(frozen=True, slots=True)
class ChartSeries:
    """Chart-ready series, index-aligned with the window (oldest first).

    Values are None where an optional field was absent so that labels and
    values stay aligned.
    """

    labels: tuple[str, ...] = ()
    values: tuple[float | None, ...] = ()
    display_min: float = 0.0
    display_max: float = 100.0

    def __len__(self) -> int:
        return len(self.labels)

    def to_dict(self) -> dict[str, Any]:
        return {
            "labels": list(self.labels),
            "values": list(self.values),
            "min": self.display_min,
            "max": self.display_max,
        }


def project(
    window: Sequence[TelemetrySample] | None,
    selector: FieldSelector | MetricName,
    *,
    display_range: tuple[float, float] = (0.0, 100.0),
    tz: tzinfo = UTC,
    time_format: str = "%H:%M:%S",
) -> ChartSeries:
    """Project a window into one chart series.

    Args:
        window: Samples oldest first, or None if nothing was loaded yet.
        selector: Metric name or callable picking the plotted value.
        display_range: Fixed (min, max) of the chart axis.
        tz: Time zone used for the wall-clock labels.
        time_format: strftime format of the labels.

    Returns:
        A series with one label and one value per sample; empty (never
        None) for an empty or missing window.
    """
    display_min, display_max = display_range
    if not window:
        return ChartSeries(display_min=display_min, display_max=display_max)

    if isinstance(selector, MetricName):
        selector = METRIC_SELECTORS[selector]

    return ChartSeries(
        labels=tuple(
            s.timestamp.astimezone(tz).strftime(time_format) for s in window
        ),
        values=tuple(_to_float(selector(s)) for s in window),
        display_min=display_min,
        display_max=display_max,
    )


def _to_float(value: float | None) -> float | None:
    return None if value is None else float(value)


def project_metrics(
    window: Sequence[TelemetrySample] | None, display: DisplaySettings
) -> dict[MetricName, ChartSeries]:
    """Project every tracked metric with its configured display range."""
    return {
        metric: project(
            window,
            metric,
            display_range=display.display_range(metric),
            tz=display.tz,
            time_format=display.label_time_format,
        )
        for metric in MetricName
    }


class HistoryStatus(StrEnum):
    """Why the incident table looks the way it does."""

    NOT_LOADED = "not_loaded"
    NO_ALERTS = "no_alerts"
    ALERTS = "alerts"

    @property
    def message(self) -> str:
        return _HISTORY_MESSAGES[self]


_HISTORY_MESSAGES: dict[HistoryStatus, str] = {
    HistoryStatus.NOT_LOADED: "Loading history...",
    HistoryStatus.NO_ALERTS: "No alerts recorded in the selected period.",
    HistoryStatus.ALERTS: "",
}


@dataclass(frozen=True, slots=True)
class AlertHistory:
    """Alert-bearing samples, newest first."""

    status: HistoryStatus = HistoryStatus.NOT_LOADED
    entries: tuple[TelemetrySample, ...] = field(default=())

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(
        self, thresholds: AlertThresholds | None = None
    ) -> dict[str, Any]:
        entries = []
        for sample in self.entries:
            entry = sample.to_dict()
            if thresholds is not None:
                entry["cause"] = classify(sample, thresholds).cause.value
            entries.append(entry)
        return {
            "status": self.status.value,
            "message": self.status.message,
            "entries": entries,
        }


def _is_alert(
    sample: TelemetrySample, thresholds: AlertThresholds | None
) -> bool:
    if thresholds is None:
        return sample.has_smoke
    return classify(sample, thresholds).cause != AlertCause.NORMAL


def filter_alerts(
    window: Sequence[TelemetrySample] | None,
    limit: int,
    thresholds: AlertThresholds | None = None,
) -> AlertHistory:
    """Select the most recent alert-bearing samples of a window.

    Without thresholds only the smoke status qualifies a sample; with
    thresholds any sample whose verdict cause is not NORMAL qualifies, so
    temperature-only incidents are listed as well.

    Args:
        window: Samples oldest first, or None if nothing was loaded yet.
        limit: Maximum number of entries returned.
        thresholds: Alert thresholds for cause-based filtering.
    """
    if window is None:
        return AlertHistory(status=HistoryStatus.NOT_LOADED)

    qualifying = sorted(
        (s for s in window if _is_alert(s, thresholds)),
        key=lambda s: (s.timestamp, s.entry_id),
        reverse=True,
    )[: max(limit, 0)]

    if not qualifying:
        return AlertHistory(status=HistoryStatus.NO_ALERTS)
    return AlertHistory(status=HistoryStatus.ALERTS, entries=tuple(qualifying))
