"""Application factory for the web server."""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from starlette.applications import Starlette
from starlette.routing import Route, WebSocketRoute

from igneo.lib.alerts import AlarmEvent
from igneo.lib.eventbus import AlarmEventPayload, TelemetryEvent
from igneo.lib.store import TelemetrySnapshot, get_store
from igneo.logging import configure, get_logger
from igneo.telemetry.poller import TelemetryPoller, create_source

from .api.dashboard import get_dashboard
from .api.health import health_check
from .api.history import get_history
from .api.refresh import request_refresh
from .api.thresholds import get_thresholds
from .websockets import (
    ALARM_ENDPOINT,
    TELEMETRY_ENDPOINT,
    connection_manager,
    ws_alarm,
    ws_telemetry,
)

_logger = get_logger("server.entrypoint")


class _Broadcaster:
    """Bridges the poller's synchronous callbacks to WebSocket fan-out."""

    def __init__(self, poller: TelemetryPoller) -> None:
        self._poller = poller
        self._tasks: set[asyncio.Task[int]] = set()

    def _schedule(self, endpoint: str, data: dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(
            connection_manager.broadcast(endpoint, data)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def on_snapshot(self, snapshot: TelemetrySnapshot) -> None:
        event = TelemetryEvent(snapshot, self._poller.history_thresholds)
        self._schedule(TELEMETRY_ENDPOINT, event.to_dict())

    def on_alarm(self, event: AlarmEvent) -> None:
        self._schedule(
            ALARM_ENDPOINT, AlarmEventPayload.from_event(event).to_dict()
        )

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)


def _build_lifespan(
    poller_factory: Callable[[], TelemetryPoller],
) -> Callable[[Starlette], Any]:
    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        """Start the poller and the WebSocket fan-out, stop both on exit."""
        poller = poller_factory()
        app.state.poller = poller

        broadcaster = _Broadcaster(poller)
        unsubscribe = poller.store.subscribe(broadcaster.on_snapshot)
        unregister_alarm = poller.alarm.register_callback(broadcaster.on_alarm)
        poller.start()
        _logger.info("Telemetry poller started")

        try:
            yield
        finally:
            unsubscribe()
            unregister_alarm()
            await poller.stop()
            await broadcaster.close()
            _logger.info("Telemetry poller stopped")

    return lifespan


def _default_poller() -> TelemetryPoller:
    return TelemetryPoller(create_source(), store=get_store())


def create_app(
    poller_factory: Callable[[], TelemetryPoller] | None = None,
) -> Starlette:
    """Create and configure the Starlette application.

    Args:
        poller_factory: Builds the poller started by the lifespan. Defaults
            to a poller on the configured channel (or the mock channel).

    Returns:
        Configured Starlette application instance.
    """
    configure()

    routes = [
        Route("/health", health_check),
        Route("/api/dashboard", get_dashboard),
        Route("/api/thresholds", get_thresholds),
        Route("/api/history", get_history),
        Route("/api/refresh", request_refresh, methods=["POST"]),
        WebSocketRoute(TELEMETRY_ENDPOINT, ws_telemetry),
        WebSocketRoute(ALARM_ENDPOINT, ws_alarm),
    ]

    return Starlette(
        routes=routes, lifespan=_build_lifespan(poller_factory or _default_poller)
    )
