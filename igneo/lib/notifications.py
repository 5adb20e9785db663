"""Notification backends for fire alarm transitions.

Provides an abstract notification interface with pluggable backends.
Supports Gmail and Slack notifications, or both simultaneously.
"""

import asyncio
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage
from smtplib import SMTP
from typing import Any, override

import httpx

from igneo.lib.alerts import AlarmEvent
from igneo.lib.config import NotificationBackend, get_settings
from igneo.lib.retry import with_retry
from igneo.logging import get_logger

logger = get_logger("lib.notifications")

_TIME_FMT = "%Y-%m-%d %H:%M:%S %Z"


def _format_smoke(event: AlarmEvent) -> str:
    return event.smoke_status or "n/a"


def format_alarm_message(event: AlarmEvent) -> str:
    """Format an alarm event as a plain-text notification message."""
    time_str = event.recording_time.strftime(_TIME_FMT)

    if event.is_resolved:
        return (
            "Fire alarm cleared\n\n"
            f"Temperature: {event.temperature:.1f}°C\n"
            f"Smoke status: {_format_smoke(event)}\n"
            f"Entry: {event.entry_id}\n"
            f"Time: {time_str}"
        )
    return (
        f"Fire alarm: {event.cause.label}!\n\n"
        f"Temperature: {event.temperature:.1f}°C\n"
        f"Smoke status: {_format_smoke(event)}\n"
        f"Entry: {event.entry_id}\n"
        f"Time: {time_str}"
    )


class AbstractNotifier(ABC):
    """Abstract base class for notification backends."""

    @abstractmethod
    async def send(self, event: AlarmEvent) -> None:
        """Send a notification for the given alarm event."""


class GmailNotifier(AbstractNotifier):
    """Gmail notification backend."""

    def _build_email(self, subject: str, body: str) -> EmailMessage:
        """Build an email message with the given subject and body."""
        gmail = get_settings().notifications.gmail
        msg = EmailMessage()
        msg.add_header("From", gmail.sender)
        msg.add_header("To", gmail.recipients)
        msg.add_header("Subject", subject)
        msg.set_content(body)
        return msg

    async def _send_email(self, message: EmailMessage, entry_id: int) -> None:
        """Send an email with retry logic and exponential backoff."""
        cfg = get_settings().notifications
        gmail = cfg.gmail
        timeout = cfg.timeout_sec

        def do_send() -> None:
            context = ssl.create_default_context()
            with SMTP("smtp.gmail.com", 587, timeout=timeout) as server:
                server.starttls(context=context)
                server.login(gmail.username, gmail.password.get_secret_value())
                server.send_message(message)
            logger.info("Sent email notification for entry %d", entry_id)

        await with_retry(
            do_send,
            name="Email",
            logger=logger,
            max_retries=cfg.max_retries,
            initial_backoff_sec=cfg.initial_backoff_sec,
            run_in_thread=True,
        )

    @override
    async def send(self, event: AlarmEvent) -> None:
        """Send email notification."""
        base_subject = get_settings().notifications.gmail.subject
        subject = (
            f"{base_subject} - Resolved" if event.is_resolved else base_subject
        )
        message = self._build_email(subject, format_alarm_message(event))
        await self._send_email(message, event.entry_id)


class SlackNotifier(AbstractNotifier):
    """Slack webhook notification backend."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    def _build_payload(self, event: AlarmEvent) -> dict[str, Any]:
        """Build a Slack message payload."""
        if event.is_resolved:
            title = "Fire alarm cleared"
        else:
            title = f":fire: {event.cause.label}"

        fields = [
            {
                "type": "mrkdwn",
                "text": f"*Temperature:*\n{event.temperature:.1f}°C",
            },
            {"type": "mrkdwn", "text": f"*Smoke:*\n{_format_smoke(event)}"},
        ]
        time_str = event.recording_time.strftime(_TIME_FMT)
        return {
            "text": title,
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": title, "emoji": True},
                },
                {"type": "section", "fields": fields},
                {
                    "type": "context",
                    "elements": [
                        {
                            "type": "mrkdwn",
                            "text": f":clock1: {time_str} · entry {event.entry_id}",
                        }
                    ],
                },
            ],
        }

    async def _send_slack(self, payload: dict[str, Any], entry_id: int) -> None:
        """Send a Slack message with retry logic."""
        cfg = get_settings().notifications
        webhook_url = cfg.slack.webhook_url

        async def do_send() -> None:
            if self._client is not None:
                response = await self._client.post(webhook_url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=cfg.timeout_sec) as client:
                    response = await client.post(webhook_url, json=payload)
            response.raise_for_status()
            logger.info("Sent Slack notification for entry %d", entry_id)

        await with_retry(
            do_send,
            name="Slack",
            logger=logger,
            max_retries=cfg.max_retries,
            initial_backoff_sec=cfg.initial_backoff_sec,
            retryable_exceptions=(httpx.HTTPError,),
        )

    @override
    async def send(self, event: AlarmEvent) -> None:
        """Send Slack notification."""
        await self._send_slack(self._build_payload(event), event.entry_id)


class CompositeNotifier(AbstractNotifier):
    """Sends notifications to multiple backends."""

    def __init__(self, notifiers: list[AbstractNotifier]):
        self._notifiers = notifiers

    @override
    async def send(self, event: AlarmEvent) -> None:
        """Send notification to all configured backends concurrently."""
        results = await asyncio.gather(
            *(notifier.send(event) for notifier in self._notifiers),
            return_exceptions=True,
        )
        for notifier, result in zip(self._notifiers, results):
            if isinstance(result, Exception):
                logger.error(
                    "%s failed: %s", type(notifier).__name__, result
                )


class NoOpNotifier(AbstractNotifier):
    """No-op notifier that logs but doesn't send notifications."""

    @override
    async def send(self, event: AlarmEvent) -> None:
        """Log the event but don't send a notification."""
        event_type = "resolution" if event.is_resolved else "alarm"
        logger.info(
            "Notifications disabled, skipping %s for entry %d",
            event_type,
            event.entry_id,
        )


_BACKEND_MAP: dict[NotificationBackend, type[AbstractNotifier]] = {
    NotificationBackend.GMAIL: GmailNotifier,
    NotificationBackend.SLACK: SlackNotifier,
}


def get_notifier() -> AbstractNotifier:
    """Factory function to get the configured notifier."""
    cfg = get_settings().notifications
    if not cfg.enabled:
        return NoOpNotifier()

    notifiers = [_BACKEND_MAP[backend]() for backend in cfg.backends]

    if not notifiers:
        return NoOpNotifier()
    if len(notifiers) == 1:
        return notifiers[0]
    return CompositeNotifier(notifiers)
