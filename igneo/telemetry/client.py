"""HTTP client for the ThingSpeak channel feed.

Two read-only endpoints are used:

- ``GET /channels/{id}/feeds/last.json``: the latest entry
- ``GET /channels/{id}/feeds.json?results=N[&start=..&end=..]``: the most
  recent N entries, oldest first, optionally bounded by a date range

Transport failures and non-2xx responses raise NetworkError; a 2xx answer
with an empty or unreadable body raises EmptyChannel. Decoded JSON is
returned as-is, validation happens in igneo.telemetry.models.
"""

from datetime import UTC, datetime
from typing import Any, Protocol

import httpx

from igneo.lib.config import ChannelSettings, get_settings
from igneo.lib.exceptions import EmptyChannel, NetworkError
from igneo.logging import get_logger

logger = get_logger("telemetry.client")

# Date format accepted by the ThingSpeak start/end parameters
_THINGSPEAK_DATE_FMT = "%Y-%m-%d %H:%M:%S"


class TelemetrySource(Protocol):
    """Protocol for telemetry channel sources."""

    async def fetch_latest(self) -> Any: ...

    async def fetch_history(
        self,
        results: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Any: ...

    async def close(self) -> None: ...


def format_thingspeak_date(value: datetime) -> str:
    """Format a datetime for the ThingSpeak start/end parameters (UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime(_THINGSPEAK_DATE_FMT)


class ThingSpeakClient:
    """Async client for a single ThingSpeak channel."""

    def __init__(
        self,
        channel: ChannelSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._channel = channel or get_settings().channel
        self._client = client or httpx.AsyncClient(
            timeout=self._channel.timeout_sec,
            headers={"Accept": "application/json"},
        )
        logger.info(
            "ThingSpeak client ready for channel %s", self._channel.channel_id
        )

    async def fetch_latest(self) -> Any:
        """Fetch the latest channel entry."""
        return await self._get_json(self._channel.latest_url)

    async def fetch_history(
        self,
        results: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Any:
        """Fetch the most recent entries of the channel feed."""
        params: dict[str, str | int] = {"results": results}
        if start is not None:
            params["start"] = format_thingspeak_date(start)
        if end is not None:
            params["end"] = format_thingspeak_date(end)
        return await self._get_json(self._channel.history_url, params)

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()
        logger.info("ThingSpeak client closed")

    async def _get_json(
        self, url: str, params: dict[str, str | int] | None = None
    ) -> Any:
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise NetworkError(f"GET {url} failed: {e}") from e

        if not response.is_success:
            raise NetworkError(
                f"GET {url} returned HTTP {response.status_code}"
            )

        if not response.content.strip():
            raise EmptyChannel(f"GET {url} returned an empty body")

        try:
            return response.json()
        except ValueError as e:
            raise EmptyChannel(f"GET {url} returned unreadable data") from e
