"""Poll the ThingSpeak channel and publish telemetry snapshots.

Every cycle fetches the latest entry, validates and classifies it, then
fetches the history window and projects it into chart series and the
incident table. The outcome of the cycle is published as a single immutable
snapshot in the snapshot store.

A failed cycle only changes the status and error of the snapshot: the last
valid sample, verdict and window are kept, and the next tick is scheduled
as usual.
"""

import dataclasses
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, override

from igneo.lib.alerts import AlarmEvent, AlarmSignal, AlertVerdict, classify
from igneo.lib.config import (
    AlertThresholds,
    HistoryFilterMode,
    Settings,
    get_settings,
)
from igneo.lib.eventbus import (
    AlarmEventPayload,
    EventPublisher,
    TelemetryEvent,
    Topic,
    get_publisher,
)
from igneo.lib.exceptions import TelemetryError
from igneo.lib.polling import PollingService
from igneo.lib.store import (
    PollError,
    PollerStatus,
    SnapshotStore,
    TelemetrySnapshot,
    get_store,
)
from igneo.logging import configure, get_logger
from igneo.telemetry.client import TelemetrySource, ThingSpeakClient
from igneo.telemetry.models import TelemetrySample, validate, validate_window
from igneo.telemetry.projections import filter_alerts, project_metrics

logger = get_logger("telemetry.poller")


@dataclass(slots=True)
class PollResult:
    """Outcome of the fetch half of a cycle."""

    sample: TelemetrySample
    window: tuple[TelemetrySample, ...] | None = None
    history_error: PollError | None = None
    verdict: AlertVerdict | None = None


class TelemetryPoller(PollingService[PollResult]):
    """Polling service for the fire sensor's ThingSpeak channel."""

    def __init__(
        self,
        source: TelemetrySource,
        store: SnapshotStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        super().__init__(name="ThingSpeak", interval_sec=settings.polling.interval_sec)
        self._source = source
        self._store = store or get_store()
        self._thresholds = settings.thresholds
        self._display = settings.display
        self._history = settings.history
        self._eventbus_enabled = settings.eventbus.enabled
        self._publisher: EventPublisher | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._unregister_alarm: Callable[[], None] | None = None
        self.alarm = AlarmSignal()

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def source(self) -> TelemetrySource:
        return self._source

    @property
    def history_thresholds(self) -> AlertThresholds | None:
        """Thresholds used to qualify history entries, None in smoke mode."""
        if self._history.filter_mode == HistoryFilterMode.CAUSE:
            return self._thresholds
        return None

    @override
    async def initialize(self) -> None:
        """Connect the event publisher when the event bus is enabled."""
        if self._eventbus_enabled and self._publisher is None:
            self._publisher = get_publisher()
            self._publisher.connect()
            self._unsubscribe = self._store.subscribe(self._publish_snapshot)
            self._unregister_alarm = self.alarm.register_callback(
                self._publish_alarm
            )

    @override
    async def cleanup(self) -> None:
        """Close the telemetry source and the event publisher."""
        await self._source.close()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._unregister_alarm is not None:
            self._unregister_alarm()
            self._unregister_alarm = None
        if self._publisher is not None:
            self._publisher.close()
            self._publisher = None

    @override
    async def stop(self) -> None:
        """Stop polling and settle a cycle left in LOADING back to IDLE."""
        await super().stop()
        current = self._store.current
        if current.status == PollerStatus.LOADING:
            self._store.replace(
                dataclasses.replace(current, status=PollerStatus.IDLE)
            )

    @override
    async def poll(self) -> PollResult | None:
        """Fetch and validate the latest entry, then the history window."""
        self._replace(
            status=PollerStatus.LOADING,
            cycle=self._store.current.cycle + 1,
        )

        raw = await self._source.fetch_latest()
        if self.stopped:
            return None
        sample = validate(raw)
        self._logger.info(
            "Read entry %d: %.1f°C, humidity=%s, smoke=%s (%s)",
            sample.entry_id,
            sample.temperature,
            sample.humidity,
            sample.smoke_level,
            sample.smoke_status,
        )

        result = PollResult(sample=sample)
        try:
            result.window = validate_window(
                await self._source.fetch_history(self._history.results)
            )
        except TelemetryError as e:
            self._logger.warning("History fetch failed: %s", e)
            result.history_error = PollError.from_exception(e)
        return result

    @override
    async def audit(self, reading: PollResult) -> bool:
        """Classify the latest sample and update the alarm signal."""
        reading.verdict = classify(reading.sample, self._thresholds)
        if self.stopped:
            return False
        self.alarm.update(reading.sample, reading.verdict)
        return True

    @override
    async def persist(self, reading: PollResult) -> None:
        """Project the window and publish the new snapshot."""
        previous = self._store.current
        now = datetime.now(UTC)

        if reading.window is not None:
            window = reading.window
            series = project_metrics(window, self._display)
            history = filter_alerts(
                window, self._history.limit, self.history_thresholds
            )
        else:
            window, series, history = (
                previous.window,
                previous.series,
                previous.history,
            )

        ok = reading.history_error is None
        self._publish(
            TelemetrySnapshot(
                status=PollerStatus.READY if ok else PollerStatus.FAILED,
                latest=reading.sample,
                verdict=reading.verdict,
                window=window,
                series=series,
                history=history,
                error=reading.history_error,
                cycle=previous.cycle,
                updated_at=now,
                last_success_at=now if ok else previous.last_success_at,
            )
        )

    @override
    def on_poll_error(self, error: Exception) -> None:
        """Record the failure, keeping the last valid data."""
        if isinstance(error, TelemetryError):
            self._logger.warning("Poll cycle failed: %s", error)
        else:
            self._logger.exception("Unexpected error during poll cycle")
        self._replace(
            status=PollerStatus.FAILED,
            error=PollError.from_exception(error),
            updated_at=datetime.now(UTC),
        )

    def _replace(self, **changes: Any) -> None:
        self._publish(dataclasses.replace(self._store.current, **changes))

    def _publish(self, snapshot: TelemetrySnapshot) -> None:
        if self.stopped:
            self._logger.debug("Poller stopped, discarding cycle %d", snapshot.cycle)
            return
        self._store.replace(snapshot)

    def _publish_snapshot(self, snapshot: TelemetrySnapshot) -> None:
        if self._publisher is not None and snapshot.status != PollerStatus.LOADING:
            self._publisher.publish(
                Topic.TELEMETRY,
                TelemetryEvent(snapshot, self.history_thresholds),
            )

    def _publish_alarm(self, event: AlarmEvent) -> None:
        if self._publisher is not None:
            self._publisher.publish(
                Topic.ALARM, AlarmEventPayload.from_event(event)
            )


def create_source(settings: Settings | None = None) -> TelemetrySource:
    """Create the telemetry source based on configuration."""
    settings = settings or get_settings()
    if settings.mock_channel:
        from igneo.lib.mock import MockChannelSource

        logger.info("Using mock ThingSpeak channel")
        return MockChannelSource()
    return ThingSpeakClient(settings.channel)


def main() -> None:
    """Start the headless telemetry poller."""
    configure(get_settings().log_level)
    poller = TelemetryPoller(create_source())
    poller.run()


if __name__ == "__main__":
    main()
