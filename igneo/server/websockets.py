"""WebSocket routes for the Ígneo dashboard.

WebSocket connections receive real-time updates pushed by the poller: the
application lifespan (in entrypoint.py) subscribes to the snapshot store
and the alarm signal and broadcasts to connected clients.
"""
import asyncio
from contextlib import suppress
from typing import Any

from starlette.websockets import WebSocket, WebSocketDisconnect

from igneo.logging import get_logger
from igneo.server._utils import get_poller, snapshot_payload

_logger = get_logger("server.websockets")

TELEMETRY_ENDPOINT = "/telemetry"
ALARM_ENDPOINT = "/alarm"

# Heartbeat interval in seconds (30s is typical for WebSocket keepalive)
_HEARTBEAT_INTERVAL_SEC = 30


class ConnectionManager:
    """Manages WebSocket connections for broadcasting."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, endpoint: str) -> int:
        """Accept a WebSocket connection and track it.

        Returns:
            A unique connection ID for this client.
        """
        await websocket.accept()
        self._connections.setdefault(endpoint, set()).add(websocket)
        client_id = id(websocket)
        _logger.info(
            "Client %s connected to %s (total: %d)",
            client_id, endpoint, len(self._connections[endpoint])
        )
        return client_id

    def disconnect(self, websocket: WebSocket, endpoint: str) -> None:
        """Remove a WebSocket connection from tracking."""
        if endpoint in self._connections:
            self._connections[endpoint].discard(websocket)
            if not self._connections[endpoint]:
                del self._connections[endpoint]
        _logger.info(
            "Client %s disconnected from %s (remaining: %d)",
            id(websocket), endpoint,
            len(self._connections.get(endpoint, set()))
        )

    def get_connection_count(self, endpoint: str | None = None) -> int:
        """Get the number of active connections.

        Args:
            endpoint: If specified, count only connections to this endpoint.
                     If None, count all connections.
        """
        if endpoint is not None:
            return len(self._connections.get(endpoint, set()))
        return sum(len(clients) for clients in self._connections.values())

    async def broadcast(self, endpoint: str, data: Any) -> int:
        """Broadcast data to all connections on an endpoint.

        Returns:
            The number of clients that received the message.
        """
        if endpoint not in self._connections:
            return 0

        sent_count = 0
        disconnected: list[WebSocket] = []

        for websocket in list(self._connections[endpoint]):
            try:
                await websocket.send_json(data)
                sent_count += 1
            except Exception:
                disconnected.append(websocket)

        # Clean up disconnected clients
        for ws in disconnected:
            self._connections.get(endpoint, set()).discard(ws)

        return sent_count


# Global connection manager
connection_manager = ConnectionManager()


async def _send_heartbeat(websocket: WebSocket, client_id: int) -> None:
    """Send periodic heartbeat pings to detect dead connections."""
    while True:
        await asyncio.sleep(_HEARTBEAT_INTERVAL_SEC)
        try:
            await websocket.send_json({"type": "ping"})
        except WebSocketDisconnect:
            raise
        except Exception:
            _logger.debug("Heartbeat failed for client %s", client_id)
            raise WebSocketDisconnect() from None


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Drain client messages until the client goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000))


async def _maintain_connection(
    websocket: WebSocket,
    endpoint: str,
    initial_data: Any = None,
) -> None:
    """Maintain a WebSocket connection for receiving broadcasts.

    Sends initial data on connect, then keeps the connection alive with
    heartbeats until either side closes it.
    """
    client_id = await connection_manager.connect(websocket, endpoint)
    tasks: list[asyncio.Task] = []

    try:
        if initial_data is not None:
            await websocket.send_json(initial_data)

        tasks = [
            asyncio.create_task(_send_heartbeat(websocket, client_id)),
            asyncio.create_task(_wait_for_disconnect(websocket)),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            task.result()
    except WebSocketDisconnect:
        pass
    except asyncio.CancelledError:
        _logger.info("Connection to client %s cancelled (shutdown)", client_id)
        raise
    finally:
        for task in tasks:
            task.cancel()
            with suppress(asyncio.CancelledError, WebSocketDisconnect):
                await task
        connection_manager.disconnect(websocket, endpoint)
        with suppress(Exception):
            await websocket.close()


async def ws_telemetry(websocket: WebSocket) -> None:
    """Stream telemetry snapshots.

    Sends the current snapshot on connect, then every new one.
    """
    initial_data = snapshot_payload(get_poller(websocket))
    await _maintain_connection(websocket, TELEMETRY_ENDPOINT, initial_data)


async def ws_alarm(websocket: WebSocket) -> None:
    """Stream alarm edges (activation and resolution).

    No initial data - alarm edges are transient events, the current state
    is part of the telemetry snapshot.
    """
    await _maintain_connection(websocket, ALARM_ENDPOINT)
