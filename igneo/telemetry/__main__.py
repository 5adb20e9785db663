"""Telemetry poller entrypoint.

Polls the ThingSpeak channel of the fire sensor, classifies the latest
reading and publishes snapshots and alarm events to the event bus.

Usage: python -m igneo.telemetry
"""

from igneo.telemetry.poller import main

if __name__ == "__main__":
    main()
