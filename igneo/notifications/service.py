"""Notification service that listens to alarm events and sends notifications.

Subscribes to the event bus ALARM topic and dispatches notifications
via configured backends (Gmail, Slack).
"""

import asyncio
import signal
from contextlib import suppress

from igneo.lib.config import get_settings
from igneo.lib.eventbus import AlarmEventPayload, EventSubscriber, Topic
from igneo.lib.notifications import get_notifier
from igneo.logging import configure, get_logger

logger = get_logger("notifications.service")


async def run() -> None:
    """Run the notification service."""
    async with EventSubscriber(topics=[Topic.ALARM]) as subscriber:
        logger.info("Notification service started")
        async for _topic, data in subscriber.receive():
            try:
                event = AlarmEventPayload.from_dict(data).to_event()
            except (KeyError, ValueError, TypeError):
                logger.exception("Failed to parse alarm event")
                continue

            event_type = "resolution" if event.is_resolved else "alarm"
            logger.info(
                "Processing %s for entry %d (%s)",
                event_type,
                event.entry_id,
                event.cause.label,
            )
            # Get notifier for each event to pick up latest settings
            notifier = get_notifier()
            try:
                await notifier.send(event)
            except OSError:
                logger.exception("Failed to send notification")

    logger.info("Notification service stopped")


def main() -> None:
    """Entry point for the notification service."""
    configure(get_settings().log_level)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    # Handle shutdown signals
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, loop.stop)

    with suppress(KeyboardInterrupt, RuntimeError):
        loop.run_until_complete(run())
    loop.close()


if __name__ == "__main__":
    main()
