"""Web server entrypoint.

Runs the Starlette web application using uvicorn on SERVER_HOST and
SERVER_PORT. The application owns the telemetry poller, so production runs
must use a single worker:

    uvicorn igneo.server:app --host 0.0.0.0 --port 5000 --workers 1

Usage: python -m igneo.server
"""
import uvicorn

from igneo.lib.config import get_settings


def main() -> None:
    """Run the web server for local development."""
    settings = get_settings()
    uvicorn.run(
        "igneo.server:app",
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
        reload=True,
    )


if __name__ == "__main__":
    main()
