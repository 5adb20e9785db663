"""Tests for alert classification and the alarm signal."""

import pytest

from conftest import make_sample
from igneo.lib.alerts import AlarmSignal, AlertCause, classify
from igneo.lib.config import AlertThresholds


@pytest.fixture
def thresholds():
    return AlertThresholds(critical_temperature=40.0)


class TestClassify:
    """Tests for the pure classifier."""

    def test_normal(self, thresholds):
        verdict = classify(make_sample(temperature=22.0), thresholds)

        assert verdict.cause == AlertCause.NORMAL
        assert verdict.temperature_alert is False
        assert verdict.smoke_alert is False
        assert verdict.is_active is False

    def test_temperature_only(self, thresholds):
        verdict = classify(make_sample(temperature=41.0), thresholds)

        assert verdict.cause == AlertCause.TEMPERATURE
        assert verdict.temperature_alert is True
        assert verdict.is_active is True

    def test_smoke_only(self, thresholds):
        verdict = classify(
            make_sample(temperature=22.0, smoke_status="FIRE_DETECTED"),
            thresholds,
        )
        assert verdict.cause == AlertCause.SMOKE
        assert verdict.smoke_alert is True

    @pytest.mark.parametrize(
        ("temperature", "status", "temperature_alert", "smoke_alert", "cause"),
        [
            (45.0, "NORMAL", True, False, AlertCause.TEMPERATURE),
            (25.0, "FIRE_DETECTED", False, True, AlertCause.SMOKE),
        ],
    )
    def test_sensor_scenarios(
        self, thresholds, temperature, status, temperature_alert, smoke_alert, cause
    ):
        verdict = classify(
            make_sample(temperature=temperature, smoke_status=status), thresholds
        )
        assert verdict.temperature_alert is temperature_alert
        assert verdict.smoke_alert is smoke_alert
        assert verdict.cause == cause

    def test_smoke_and_temperature(self, thresholds):
        verdict = classify(
            make_sample(temperature=55.0, smoke_status="FIRE_DETECTED"),
            thresholds,
        )
        assert verdict.cause == AlertCause.SMOKE_AND_TEMPERATURE
        assert verdict.cause.label == "Smoke and high temperature"

    def test_temperature_at_threshold_is_not_alert(self, thresholds):
        """The comparison is strict."""
        verdict = classify(make_sample(temperature=40.0), thresholds)
        assert verdict.temperature_alert is False
        assert verdict.cause == AlertCause.NORMAL

    def test_missing_smoke_status_raises_smoke_alert(self, thresholds):
        verdict = classify(make_sample(smoke_status=None), thresholds)
        assert verdict.smoke_alert is True
        assert verdict.cause == AlertCause.SMOKE

    def test_smoke_status_match_is_case_sensitive(self, thresholds):
        verdict = classify(make_sample(smoke_status="Normal"), thresholds)
        assert verdict.smoke_alert is True

    def test_custom_critical_temperature(self):
        verdict = classify(
            make_sample(temperature=31.0),
            AlertThresholds(critical_temperature=30.0),
        )
        assert verdict.cause == AlertCause.TEMPERATURE

    def test_humidity_disabled_by_default(self, thresholds):
        verdict = classify(make_sample(humidity=99.0), thresholds)
        assert verdict.humidity_alert is False

    @pytest.mark.parametrize(
        ("humidity", "expected"),
        [(19.0, True), (20.0, False), (80.0, False), (81.0, True), (None, False)],
    )
    def test_humidity_bounds(self, humidity, expected):
        thresholds = AlertThresholds(min_humidity=20.0, max_humidity=80.0)
        verdict = classify(make_sample(humidity=humidity), thresholds)

        assert verdict.humidity_alert is expected
        # Humidity never changes the cause
        assert verdict.cause == AlertCause.NORMAL

    def test_is_pure(self, thresholds):
        sample = make_sample(temperature=45.0)
        assert classify(sample, thresholds) == classify(sample, thresholds)

    def test_to_dict(self, thresholds):
        data = classify(make_sample(temperature=45.0), thresholds).to_dict()
        assert data["cause"] == "temperature"
        assert data["label"] == "High temperature"
        assert data["is_active"] is True


class TestAlarmSignal:
    """Tests for the edge-triggered alarm."""

    @pytest.fixture
    def signal(self):
        return AlarmSignal()

    @pytest.fixture
    def events(self, signal):
        captured = []
        signal.register_callback(captured.append)
        return captured

    def _feed(self, signal, thresholds, **kwargs):
        sample = make_sample(**kwargs)
        return signal.update(sample, classify(sample, thresholds))

    def test_no_event_while_normal(self, signal, events, thresholds):
        self._feed(signal, thresholds, entry_id=1)
        self._feed(signal, thresholds, entry_id=2)
        assert events == []

    def test_raise_and_clear(self, signal, events, thresholds):
        self._feed(signal, thresholds, entry_id=1)
        self._feed(signal, thresholds, entry_id=2, temperature=50.0)
        self._feed(signal, thresholds, entry_id=3, temperature=51.0)
        self._feed(signal, thresholds, entry_id=4)

        assert [e.is_active for e in events] == [True, False]
        assert events[0].cause == AlertCause.TEMPERATURE
        assert events[0].entry_id == 2
        assert events[1].is_resolved
        assert signal.active is False

    def test_unregistered_callback_is_not_called(self, signal, thresholds):
        captured = []
        unregister = signal.register_callback(captured.append)
        unregister()
        unregister()

        self._feed(signal, thresholds, entry_id=1, temperature=50.0)

        assert captured == []
        assert signal.callback_count == 0

    def test_cause_change_does_not_fire(self, signal, events, thresholds):
        self._feed(signal, thresholds, entry_id=1, temperature=50.0)
        self._feed(
            signal,
            thresholds,
            entry_id=2,
            temperature=50.0,
            smoke_status="FIRE_DETECTED",
        )

        assert len(events) == 1
        assert signal.cause == AlertCause.SMOKE_AND_TEMPERATURE

    def test_same_entry_is_ignored(self, signal, events, thresholds):
        self._feed(signal, thresholds, entry_id=1, temperature=50.0)
        self._feed(signal, thresholds, entry_id=1, temperature=20.0)

        assert len(events) == 1
        assert signal.active is True

    def test_callback_errors_are_logged(self, signal, thresholds, caplog):
        def broken(_event):
            raise RuntimeError("boom")

        signal.register_callback(broken)
        event = self._feed(signal, thresholds, entry_id=1, temperature=50.0)

        assert event is not None
        assert "Alarm callback" in caplog.text

    def test_raise_is_logged_as_warning(self, signal, thresholds, caplog):
        self._feed(
            signal, thresholds, entry_id=9, smoke_status="FIRE_DETECTED"
        )
        assert "Alarm raised: Smoke detected (entry 9" in caplog.text
