from starlette.requests import Request
from starlette.responses import JSONResponse

from igneo.lib.config import get_settings
from igneo.server._utils import get_poller, snapshot_payload


async def get_dashboard(request: Request) -> JSONResponse:
    """Return the current telemetry snapshot as JSON for SPA consumption."""
    display = get_settings().display
    return JSONResponse(
        {
            **snapshot_payload(get_poller(request)),
            "location": {
                "latitude": display.latitude,
                "longitude": display.longitude,
            },
            "timezone": display.timezone,
        }
    )
