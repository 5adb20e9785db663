"""Shared pytest fixtures for the test suite."""

import logging
from datetime import UTC, datetime, timedelta

import pytest

from igneo.lib.config.testing import override_settings, set_settings
from igneo.lib.store import reset_store
from igneo.telemetry.models import TelemetrySample


@pytest.fixture(autouse=True)
def configure_caplog(caplog):
    """Ensure caplog captures logs from the igneo namespace."""
    caplog.set_level(logging.INFO, logger="igneo")


@pytest.fixture(autouse=True)
def reset_settings():
    """Use a known channel and reset settings after each test."""
    override_settings()
    yield
    set_settings(None)


@pytest.fixture(autouse=True)
def reset_snapshot_store():
    """Reset the global snapshot store before and after each test."""
    reset_store()
    yield
    reset_store()


@pytest.fixture
def frozen_time():
    """Return a fixed datetime for deterministic tests."""
    return datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC)


def make_raw(
    entry_id=1,
    created_at="2024-06-15T12:00:00Z",
    temperature="22.5",
    humidity="55",
    smoke_level="300",
    smoke_status="NORMAL",
):
    """Create a ThingSpeak-shaped record for testing."""
    raw = {"entry_id": entry_id, "created_at": created_at}
    for key, value in (
        ("field1", temperature),
        ("field2", humidity),
        ("field3", smoke_level),
        ("field4", smoke_status),
    ):
        if value is not None:
            raw[key] = value
    return raw


def make_sample(
    entry_id=1,
    timestamp=None,
    temperature=22.5,
    humidity=55.0,
    smoke_level=300.0,
    smoke_status="NORMAL",
):
    """Create a validated TelemetrySample for testing."""
    return TelemetrySample(
        entry_id=entry_id,
        timestamp=timestamp or datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC),
        temperature=temperature,
        humidity=humidity,
        smoke_level=smoke_level,
        smoke_status=smoke_status,
    )


def make_feed(*records, channel_id=123456):
    """Wrap records into a ThingSpeak feed document."""
    return {"channel": {"id": channel_id}, "feeds": list(records)}


def make_window(count, start=None, spacing=timedelta(seconds=15), **kwargs):
    """Create an oldest-first window of samples with increasing entry ids."""
    start = start or datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC)
    return tuple(
        make_sample(entry_id=i + 1, timestamp=start + spacing * i, **kwargs)
        for i in range(count)
    )


@pytest.fixture
def sample(frozen_time):
    """Create a valid, non-alerting sample."""
    return make_sample(timestamp=frozen_time)
