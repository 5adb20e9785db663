"""Custom exceptions for the Ígneo monitor.

Telemetry errors carry a user-facing message so the presentation layer can
tell a connectivity problem from an empty channel without parsing text.
"""


class IgneoError(Exception):
    """Base exception for all application errors."""


class TelemetryError(IgneoError):
    """Base exception for errors local to one poll cycle."""

    user_message = "Unable to load telemetry data."


class NetworkError(TelemetryError):
    """Raised on transport failures and non-2xx provider responses."""

    user_message = "Network error while fetching data from ThingSpeak."


class EmptyChannel(TelemetryError):
    """Raised when the provider answers without any usable record."""

    user_message = "ThingSpeak channel is empty or data is not available."


class MalformedSample(TelemetryError):
    """Raised when a record exists but a required field is unusable."""

    user_message = "Latest reading was malformed and has been discarded."
