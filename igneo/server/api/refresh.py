"""Manual refresh endpoint."""

import asyncio

from starlette.requests import Request
from starlette.responses import JSONResponse

from igneo.logging import get_logger
from igneo.server._utils import get_poller

logger = get_logger("server.api.refresh")

# Strong references to in-flight refresh cycles
_refresh_tasks: set[asyncio.Task[bool]] = set()


async def request_refresh(request: Request) -> JSONResponse:
    """Start a poll cycle now unless one is already in flight."""
    poller = get_poller(request)
    if poller.stopped:
        return JSONResponse({"status": "stopped"}, status_code=503)
    if poller.busy:
        return JSONResponse({"status": "skipped"}, status_code=409)

    task = asyncio.create_task(poller.poll_once())
    _refresh_tasks.add(task)
    task.add_done_callback(_refresh_tasks.discard)
    logger.info("Manual refresh requested")
    return JSONResponse({"status": "started"}, status_code=202)
