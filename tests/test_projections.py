"""Tests for the chart and history projections."""

import dataclasses
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from conftest import make_sample, make_window
from igneo.lib.config import AlertThresholds, DisplaySettings, MetricName
from igneo.telemetry.projections import (
    HistoryStatus,
    filter_alerts,
    project,
    project_metrics,
)


class TestProject:
    """Tests for projecting a window into a chart series."""

    def test_labels_and_values_aligned(self):
        window = make_window(3)
        series = project(window, MetricName.TEMPERATURE)

        assert series.labels == ("12:00:00", "12:00:15", "12:00:30")
        assert series.values == (22.5, 22.5, 22.5)
        assert len(series) == 3

    def test_callable_selector(self):
        window = make_window(2)
        series = project(window, lambda s: s.entry_id * 10)
        assert series.values == (10.0, 20.0)

    def test_absent_optional_values_are_none(self):
        window = (
            make_sample(entry_id=1, humidity=None),
            make_sample(entry_id=2, humidity=40.0),
        )
        series = project(window, MetricName.HUMIDITY)

        assert series.values == (None, 40.0)
        assert len(series.labels) == len(series.values)

    @pytest.mark.parametrize("window", [None, ()])
    def test_empty_or_missing_window(self, window):
        series = project(window, MetricName.TEMPERATURE, display_range=(0, 50))

        assert series.labels == ()
        assert series.values == ()
        assert series.display_min == 0
        assert series.display_max == 50

    def test_labels_use_display_timezone(self):
        window = make_window(1)
        series = project(
            window,
            MetricName.TEMPERATURE,
            tz=ZoneInfo("America/Santiago"),
            time_format="%H:%M",
        )
        # Santiago is UTC-4 in June
        assert series.labels == ("08:00",)

    def test_does_not_mutate_window(self):
        window = list(make_window(3))
        snapshot = list(window)
        project(window, MetricName.TEMPERATURE)
        assert window == snapshot

    def test_is_idempotent(self):
        window = (
            make_sample(entry_id=1, humidity=None),
            make_sample(entry_id=2, humidity=48.0),
        )
        first = project(window, MetricName.HUMIDITY, display_range=(0, 100))
        second = project(window, MetricName.HUMIDITY, display_range=(0, 100))
        assert first == second

    def test_to_dict(self):
        data = project(make_window(1), MetricName.TEMPERATURE).to_dict()
        assert data == {
            "labels": ["12:00:00"],
            "values": [22.5],
            "min": 0.0,
            "max": 100.0,
        }


class TestProjectMetrics:
    """Tests for projecting every metric at once."""

    def test_uses_display_ranges(self):
        display = DisplaySettings(smoke_display_max=3000.0)
        series = project_metrics(make_window(2), display)

        assert set(series) == set(MetricName)
        assert series[MetricName.SMOKE_LEVEL].display_max == 3000.0
        assert series[MetricName.TEMPERATURE].display_max == 100.0
        assert series[MetricName.SMOKE_LEVEL].values == (300.0, 300.0)


class TestFilterAlerts:
    """Tests for selecting alert-bearing samples."""

    def test_not_loaded(self):
        history = filter_alerts(None, 5)

        assert history.status == HistoryStatus.NOT_LOADED
        assert history.status.message == "Loading history..."
        assert len(history) == 0

    def test_no_alerts(self):
        history = filter_alerts(make_window(4), 5)

        assert history.status == HistoryStatus.NO_ALERTS
        assert history.status.message == (
            "No alerts recorded in the selected period."
        )

    def test_smoke_mode_newest_first_and_limited(self):
        window = make_window(8, smoke_status="FIRE_DETECTED")
        history = filter_alerts(window, 5)

        assert history.status == HistoryStatus.ALERTS
        assert [s.entry_id for s in history.entries] == [8, 7, 6, 5, 4]

    def test_smoke_mode_ignores_temperature(self):
        window = (make_sample(entry_id=1, temperature=90.0),)
        assert filter_alerts(window, 5).status == HistoryStatus.NO_ALERTS

    def test_cause_mode_includes_temperature_only(self):
        window = (
            make_sample(entry_id=1, temperature=90.0),
            make_sample(entry_id=2),
        )
        history = filter_alerts(
            window, 5, AlertThresholds(critical_temperature=40.0)
        )
        assert [s.entry_id for s in history.entries] == [1]

    def test_two_alerts_in_twenty_samples(self):
        window = tuple(
            dataclasses.replace(s, smoke_status="FIRE_DETECTED")
            if s.entry_id in (7, 15)
            else s
            for s in make_window(20)
        )
        history = filter_alerts(window, 5)

        assert history.status == HistoryStatus.ALERTS
        assert [s.entry_id for s in history.entries] == [15, 7]

    def test_missing_smoke_status_qualifies(self):
        window = (
            make_sample(entry_id=1, smoke_status=None),
            make_sample(entry_id=2),
        )
        history = filter_alerts(window, 5)
        assert [s.entry_id for s in history.entries] == [1]

    def test_sorts_by_timestamp_then_entry_id(self):
        base = datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC)
        window = (
            make_sample(entry_id=3, timestamp=base, smoke_status="FIRE"),
            make_sample(
                entry_id=1,
                timestamp=base + timedelta(minutes=1),
                smoke_status="FIRE",
            ),
            make_sample(entry_id=2, timestamp=base, smoke_status="FIRE"),
        )
        history = filter_alerts(window, 5)
        assert [s.entry_id for s in history.entries] == [1, 3, 2]

    def test_zero_limit(self):
        window = make_window(3, smoke_status="FIRE_DETECTED")
        history = filter_alerts(window, 0)
        assert history.entries == ()

    def test_to_dict_adds_cause_with_thresholds(self):
        window = (make_sample(entry_id=1, temperature=90.0),)
        thresholds = AlertThresholds(critical_temperature=40.0)
        data = filter_alerts(window, 5, thresholds).to_dict(thresholds)

        assert data["status"] == "alerts"
        assert data["entries"][0]["entry_id"] == 1
        assert data["entries"][0]["cause"] == "temperature"
