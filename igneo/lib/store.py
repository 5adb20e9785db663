"""Snapshot store for the results of the telemetry pipeline.

The poller is the only writer: each cycle builds a new immutable
TelemetrySnapshot and replaces the current one in a single assignment.
Readers (API handlers, WebSocket fan-out, event bus) either read
``store.current`` or subscribe to be called with each new snapshot.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from igneo.lib.alerts import AlertVerdict
from igneo.lib.config import AlertThresholds, MetricName
from igneo.lib.exceptions import (
    EmptyChannel,
    MalformedSample,
    NetworkError,
    TelemetryError,
)
from igneo.logging import get_logger
from igneo.telemetry.models import TelemetrySample
from igneo.telemetry.projections import AlertHistory, ChartSeries

logger = get_logger("lib.store")


class PollerStatus(StrEnum):
    """Lifecycle of the poller as seen by readers."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ErrorKind(StrEnum):
    NETWORK = "network"
    EMPTY_CHANNEL = "empty_channel"
    MALFORMED_SAMPLE = "malformed_sample"
    UNEXPECTED = "unexpected"


_ERROR_KINDS: dict[type[TelemetryError], ErrorKind] = {
    NetworkError: ErrorKind.NETWORK,
    EmptyChannel: ErrorKind.EMPTY_CHANNEL,
    MalformedSample: ErrorKind.MALFORMED_SAMPLE,
}


@dataclass(frozen=True, slots=True)
class PollError:
    """A cycle failure as shown to operators."""

    kind: ErrorKind
    message: str
    detail: str = ""

    @classmethod
    def from_exception(cls, error: Exception) -> "PollError":
        for exc_type, kind in _ERROR_KINDS.items():
            if isinstance(error, exc_type):
                return cls(kind, exc_type.user_message, str(error))
        return cls(ErrorKind.UNEXPECTED, TelemetryError.user_message, str(error))

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


@dataclass(frozen=True, slots=True)
class TelemetrySnapshot:
    """Everything the presentation layer needs after one cycle.

    ``window`` is None until the history has been fetched once, which lets
    readers tell "not loaded yet" from "loaded and empty".
    """

    status: PollerStatus = PollerStatus.IDLE
    latest: TelemetrySample | None = None
    verdict: AlertVerdict | None = None
    window: tuple[TelemetrySample, ...] | None = None
    series: dict[MetricName, ChartSeries] = field(default_factory=dict)
    history: AlertHistory = field(default_factory=AlertHistory)
    error: PollError | None = None
    cycle: int = 0
    updated_at: datetime | None = None
    last_success_at: datetime | None = None

    @property
    def alert_active(self) -> bool:
        return self.verdict is not None and self.verdict.is_active

    def to_dict(
        self, thresholds: AlertThresholds | None = None
    ) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "loading": self.status == PollerStatus.LOADING,
            "error": self.error.to_dict() if self.error else None,
            "alert_active": self.alert_active,
            "latest": self.latest.to_dict() if self.latest else None,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "series": {
                metric.value: series.to_dict()
                for metric, series in self.series.items()
            },
            "history": self.history.to_dict(thresholds),
            "cycle": self.cycle,
            "updated_at": _isoformat(self.updated_at),
            "last_success_at": _isoformat(self.last_success_at),
        }


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


type SnapshotCallback = Callable[[TelemetrySnapshot], None]


class SnapshotStore:
    """Holds the current snapshot and notifies subscribers on replace."""

    def __init__(self) -> None:
        self._current = TelemetrySnapshot()
        self._subscribers: list[SnapshotCallback] = []

    @property
    def current(self) -> TelemetrySnapshot:
        return self._current

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def replace(self, snapshot: TelemetrySnapshot) -> None:
        """Atomically publish a new snapshot to all subscribers."""
        self._current = snapshot
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot subscriber %s failed", callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


# Global store instance (shared by the poller and the web server)
_store: SnapshotStore | None = None


def get_store() -> SnapshotStore:
    """Get or create the global snapshot store."""
    global _store
    if _store is None:
        _store = SnapshotStore()
    return _store


def reset_store() -> None:
    """Drop the global store (for testing)."""
    global _store
    _store = None
