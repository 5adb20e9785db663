"""Redis-based event bus for broadcasting telemetry and alarm events.

Provides pub/sub messaging between the poller (publisher) and out-of-process
consumers such as the notification service (subscribers).
"""

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal, Self

import redis
import redis.asyncio as aioredis

from igneo.lib.alerts import AlarmEvent, AlertCause
from igneo.lib.config import AlertThresholds, get_settings
from igneo.lib.store import TelemetrySnapshot
from igneo.logging import get_logger

logger = get_logger("lib.eventbus")

# Timestamp format used on the wire
EVENT_TIME_FMT = "%Y-%m-%d %H:%M:%S"


class Topic(StrEnum):
    """Event bus topics."""

    TELEMETRY = "telemetry.snapshot"
    ALARM = "alarm"


@dataclass(frozen=True, slots=True)
class Event(ABC):
    """Base class for all event bus payloads."""

    @property
    @abstractmethod
    def event_type(self) -> str:
        """Discriminator field for event type identification."""

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""


@dataclass(frozen=True, slots=True)
class TelemetryEvent(Event):
    """A new snapshot produced by the poller."""

    snapshot: TelemetrySnapshot
    # Classifies history entries when set
    thresholds: AlertThresholds | None = None

    @property
    def event_type(self) -> Literal["telemetry"]:
        return "telemetry"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.event_type, **self.snapshot.to_dict(self.thresholds)}


@dataclass(frozen=True, slots=True)
class AlarmEventPayload(Event):
    """Alarm activation or resolution."""

    is_active: bool
    cause: AlertCause
    entry_id: int
    temperature: float
    smoke_status: str | None
    recording_time: datetime

    @property
    def event_type(self) -> Literal["alarm"]:
        return "alarm"

    @classmethod
    def from_event(cls, event: AlarmEvent) -> Self:
        return cls(
            is_active=event.is_active,
            cause=event.cause,
            entry_id=event.entry_id,
            temperature=event.temperature,
            smoke_status=event.smoke_status,
            recording_time=event.recording_time,
        )

    def to_event(self) -> AlarmEvent:
        return AlarmEvent(
            is_active=self.is_active,
            cause=self.cause,
            entry_id=self.entry_id,
            temperature=self.temperature,
            smoke_status=self.smoke_status,
            recording_time=self.recording_time,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "is_active": self.is_active,
            "cause": self.cause.value,
            "label": self.cause.label,
            "entry_id": self.entry_id,
            "temperature": self.temperature,
            "smoke_status": self.smoke_status,
            "recording_time": self.recording_time.strftime(EVENT_TIME_FMT),
            "epoch": int(self.recording_time.timestamp() * 1000),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Parse a payload received from the event bus.

        Raises:
            KeyError, ValueError: If the payload is incomplete or invalid.
        """
        return cls(
            is_active=bool(data["is_active"]),
            cause=AlertCause(data["cause"]),
            entry_id=int(data["entry_id"]),
            temperature=float(data["temperature"]),
            smoke_status=data.get("smoke_status"),
            recording_time=datetime.fromtimestamp(data["epoch"] / 1000, tz=UTC),
        )


class EventPublisher:
    """Publishes telemetry and alarm events to the event bus.

    Used by the poller. Publishing failures are logged and never propagate
    into the poll cycle.
    """

    def __init__(self) -> None:
        self._redis_url = get_settings().eventbus.redis_url
        self._client: redis.Redis | None = None

    def connect(self) -> None:
        """Connect to Redis."""
        self._client = redis.from_url(self._redis_url)
        logger.info("Event publisher connected to Redis")

    def publish(self, topic: Topic, event: Event) -> None:
        """Publish a message to the event bus.

        Args:
            topic: The topic to publish to (e.g., Topic.ALARM).
            event: Event to publish.
        """
        if self._client is None:
            return

        message = json.dumps(event.to_dict())
        try:
            self._client.publish(topic, message)
        except (redis.RedisError, OSError) as e:
            logger.warning("Failed to publish to %s: %s", topic, e)
            return
        logger.debug("Published to %s: %s", topic, message)

    def close(self) -> None:
        """Close the publisher connection."""
        if self._client is not None:
            self._client.close()
            self._client = None
        logger.info("Event publisher closed")


class EventSubscriber:
    """Subscribes to events from the event bus.

    Used by the notification service to receive alarm transitions.
    """

    def __init__(self, topics: list[Topic] | None = None) -> None:
        """Initialize subscriber.

        Args:
            topics: List of topics to subscribe to. If None, subscribes to all.
        """
        self._redis_url = get_settings().eventbus.redis_url
        self._topics = topics or list(Topic)
        self._client: aioredis.Redis | None = None
        self._pubsub: aioredis.client.PubSub | None = None

    async def connect(self) -> None:
        """Connect to Redis and subscribe to topics."""
        self._client = aioredis.from_url(self._redis_url)
        self._pubsub = self._client.pubsub()
        await self._pubsub.subscribe(*self._topics)
        logger.info(
            "Event subscriber connected to Redis, topics: %s", self._topics
        )

    async def receive(self) -> AsyncIterator[tuple[Topic, dict[str, Any]]]:
        """Async iterator that yields (topic, data) tuples as they arrive."""
        if self._pubsub is None:
            return

        async for message in self._pubsub.listen():
            if message["type"] != "message":
                continue

            try:
                topic = Topic(message["channel"].decode())
                data = json.loads(message["data"].decode())
                yield topic, data
            except (ValueError, json.JSONDecodeError) as e:
                logger.warning("Invalid message: %s", e)

    async def close(self) -> None:
        """Close the subscriber connection."""
        if self._pubsub is not None:
            await self._pubsub.unsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Event subscriber closed")

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        await self.close()


# Global publisher instance (initialized by the poller)
_publisher: EventPublisher | None = None


def get_publisher() -> EventPublisher:
    """Get or create the global publisher instance."""
    global _publisher
    if _publisher is None:
        _publisher = EventPublisher()
    return _publisher
