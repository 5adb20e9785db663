"""Tests for the notification service."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from igneo.lib.alerts import AlarmEvent, AlertCause
from igneo.lib.eventbus import AlarmEventPayload, Topic
from igneo.notifications.service import run


def make_payload():
    event = AlarmEvent(
        is_active=True,
        cause=AlertCause.SMOKE,
        entry_id=12,
        temperature=30.0,
        smoke_status="FIRE_DETECTED",
        recording_time=datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC),
    )
    return event, AlarmEventPayload.from_event(event).to_dict()


def make_subscriber(messages):
    subscriber = MagicMock()

    async def receive():
        for message in messages:
            yield message

    subscriber.receive = receive
    subscriber.__aenter__ = AsyncMock(return_value=subscriber)
    subscriber.__aexit__ = AsyncMock(return_value=None)
    return subscriber


class TestNotificationService:
    @pytest.mark.asyncio
    async def test_dispatches_alarm_events(self):
        event, data = make_payload()
        notifier = AsyncMock()
        subscriber = make_subscriber([(Topic.ALARM, data)])

        with (
            patch(
                "igneo.notifications.service.EventSubscriber",
                return_value=subscriber,
            ),
            patch(
                "igneo.notifications.service.get_notifier",
                return_value=notifier,
            ),
        ):
            await run()

        notifier.send.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_invalid_payload_is_skipped(self, caplog):
        event, data = make_payload()
        notifier = AsyncMock()
        subscriber = make_subscriber(
            [(Topic.ALARM, {"is_active": True}), (Topic.ALARM, data)]
        )

        with (
            patch(
                "igneo.notifications.service.EventSubscriber",
                return_value=subscriber,
            ),
            patch(
                "igneo.notifications.service.get_notifier",
                return_value=notifier,
            ),
        ):
            await run()

        assert "Failed to parse alarm event" in caplog.text
        notifier.send.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_send_failure_does_not_stop_service(self, caplog):
        _, data = make_payload()
        notifier = AsyncMock()
        notifier.send.side_effect = [OSError("smtp down"), None]
        subscriber = make_subscriber([(Topic.ALARM, data), (Topic.ALARM, data)])

        with (
            patch(
                "igneo.notifications.service.EventSubscriber",
                return_value=subscriber,
            ),
            patch(
                "igneo.notifications.service.get_notifier",
                return_value=notifier,
            ),
        ):
            await run()

        assert notifier.send.await_count == 2
        assert "Failed to send notification" in caplog.text
