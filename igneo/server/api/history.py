"""On-demand history endpoint.

Fetches a window over an arbitrary date range from the channel, without
touching the poller's snapshot.
"""

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from igneo.lib.config import get_settings
from igneo.lib.exceptions import EmptyChannel, NetworkError
from igneo.logging import get_logger
from igneo.server._utils import get_poller
from igneo.server.validators import HistoryQuery
from igneo.telemetry.models import validate_window
from igneo.telemetry.projections import filter_alerts, project_metrics

logger = get_logger("server.api.history")


async def get_history(request: Request) -> JSONResponse:
    """Return chart series and alert history for the requested range."""
    try:
        query = HistoryQuery.from_params(request.query_params)
    except ValidationError as err:
        return JSONResponse(
            {"error": err.errors(include_url=False, include_context=False)},
            status_code=400,
        )

    poller = get_poller(request)
    try:
        window = validate_window(
            await poller.source.fetch_history(query.results, query.start, query.end)
        )
    except NetworkError as e:
        logger.warning("History request failed: %s", e)
        return JSONResponse({"error": e.user_message}, status_code=502)
    except EmptyChannel as e:
        return JSONResponse({"error": e.user_message}, status_code=404)

    settings = get_settings()
    thresholds = poller.history_thresholds
    series = project_metrics(window, settings.display)
    history = filter_alerts(window, settings.history.limit, thresholds)
    return JSONResponse(
        {
            "results": query.results,
            "start": query.start.isoformat() if query.start else None,
            "end": query.end.isoformat() if query.end else None,
            "count": len(window),
            "series": {
                metric.value: chart.to_dict() for metric, chart in series.items()
            },
            "history": history.to_dict(thresholds),
        }
    )
