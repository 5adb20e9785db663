"""Logging configuration for the Ígneo monitor.

Every module logs through a child of the ``igneo`` logger. Each process
(web server, headless poller, notification service) calls configure() once
at startup.
"""

import logging
import sys

_configured = False

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"

# Third-party loggers that would otherwise log on every poll cycle or
# WebSocket connection
QUIET_LOGGERS = (
    "uvicorn.protocols.websockets",
    "httpx",
    "httpcore",
)


def configure(level: int | str = logging.INFO) -> None:
    """Configure logging for the application.

    Safe to call multiple times - only configures once.

    Args:
        level: Level of the igneo namespace, as a number or a level name
            such as "DEBUG" (LOG_LEVEL setting).
    """
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger("igneo")
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.addHandler(handler)

    # Route uvicorn through the same handler and format
    uv_log = logging.getLogger("uvicorn")
    uv_log.handlers.clear()
    uv_log.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the 'igneo' namespace.

    Args:
        name: Logger name (will be prefixed with 'igneo.')

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(f"igneo.{name}")
