"""Helpers shared by the HTTP and WebSocket handlers."""

from typing import Any

from starlette.requests import HTTPConnection

from igneo.lib.eventbus import TelemetryEvent
from igneo.telemetry.poller import TelemetryPoller


def get_poller(conn: HTTPConnection) -> TelemetryPoller:
    """Return the poller owned by the application lifespan."""
    return conn.app.state.poller


def snapshot_payload(poller: TelemetryPoller) -> dict[str, Any]:
    """Serialize the current snapshot the same way it is broadcast."""
    return TelemetryEvent(
        poller.store.current, poller.history_thresholds
    ).to_dict()
