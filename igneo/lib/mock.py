"""Mock ThingSpeak channel for development.

Provides an in-process implementation of the telemetry source protocol that
generates realistic fire-sensor entries without a live channel. Used by the
poller and the web server when MOCK_CHANNEL=1 is set.

Values follow a bounded random walk; every now and then a smoke episode
starts, pushing the smoke level up and reporting a non-NORMAL status for a
few entries, sometimes together with a temperature spike.
"""

import random
from collections import deque
from datetime import UTC, datetime, timedelta
from typing import Any

# ThingSpeak keeps at most this many entries per feed request
_MAX_ENTRIES = 8000

# Spacing of the entries seeded at start-up
_SEED_SPACING = timedelta(seconds=15)

_SMOKE_EPISODE_CHANCE = 0.03
_SMOKE_EPISODE_LENGTH = (2, 6)
_FIRE_STATUS = "FIRE_DETECTED"


def _random_walk(
    current: float, drift: float, min_val: float, max_val: float
) -> float:
    """Generate next value using random walk with bounds."""
    change = random.gauss(0, drift)
    new_val = current + change
    return max(min_val, min(max_val, new_val))


def _format_created_at(when: datetime) -> str:
    return when.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class MockChannelSource:
    """Mock ThingSpeak channel that generates one entry per latest fetch."""

    def __init__(self, seed_entries: int = 20, channel_id: int = 0) -> None:
        self._channel_id = channel_id
        self._entries: deque[tuple[datetime, dict[str, Any]]] = deque(
            maxlen=_MAX_ENTRIES
        )
        self._entry_id = 0
        self._temperature = random.uniform(20.0, 24.0)
        self._humidity = random.uniform(40.0, 55.0)
        self._smoke_level = random.uniform(150.0, 300.0)
        self._smoke_ticks = 0

        start = datetime.now(UTC) - _SEED_SPACING * seed_entries
        for i in range(seed_entries):
            self._append(start + _SEED_SPACING * i)

    def _next_smoke(self) -> tuple[float, str]:
        if self._smoke_ticks == 0 and random.random() < _SMOKE_EPISODE_CHANCE:
            self._smoke_ticks = random.randint(*_SMOKE_EPISODE_LENGTH)

        if self._smoke_ticks > 0:
            self._smoke_ticks -= 1
            self._smoke_level = random.uniform(1200.0, 2400.0)
            return self._smoke_level, _FIRE_STATUS

        self._smoke_level = _random_walk(
            self._smoke_level, drift=20.0, min_val=100.0, max_val=400.0
        )
        return self._smoke_level, "NORMAL"

    def _append(self, when: datetime) -> dict[str, Any]:
        smoke_level, smoke_status = self._next_smoke()
        self._temperature = _random_walk(
            self._temperature, drift=0.3, min_val=15.0, max_val=35.0
        )
        temperature = self._temperature
        if smoke_status != "NORMAL" and random.random() < 0.5:
            temperature += random.uniform(15.0, 30.0)
        self._humidity = _random_walk(
            self._humidity, drift=0.5, min_val=20.0, max_val=80.0
        )

        self._entry_id += 1
        entry = {
            "created_at": _format_created_at(when),
            "entry_id": self._entry_id,
            "field1": f"{temperature:.1f}",
            "field2": f"{self._humidity:.1f}",
            "field3": f"{smoke_level:.0f}",
            "field4": smoke_status,
        }
        self._entries.append((when, entry))
        return entry

    async def fetch_latest(self) -> dict[str, Any]:
        """Generate a new entry and return it."""
        return dict(self._append(datetime.now(UTC)))

    async def fetch_history(
        self,
        results: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, Any]:
        """Return the most recent entries, oldest first."""
        feeds = [
            dict(entry)
            for when, entry in self._entries
            if (start is None or when >= start) and (end is None or when <= end)
        ]
        return {
            "channel": {"id": self._channel_id, "name": "Mock Ígneo sensor"},
            "feeds": feeds[-results:] if results > 0 else [],
        }

    async def close(self) -> None:
        """No-op for mock channel."""
