"""Thresholds API endpoint."""

from starlette.requests import Request
from starlette.responses import JSONResponse

from igneo.lib.config import MetricName, get_settings


async def get_thresholds(request: Request) -> JSONResponse:
    """Return current threshold and chart range configuration."""
    settings = get_settings()
    thresholds = settings.thresholds
    display = settings.display
    return JSONResponse({
        "temperature": {
            "critical": thresholds.critical_temperature,
        },
        "humidity": {
            "min": thresholds.min_humidity,
            "max": thresholds.max_humidity,
            "enabled": thresholds.humidity_enabled,
        },
        "display": {
            metric.value: {
                "min": display.display_range(metric)[0],
                "max": display.display_range(metric)[1],
                "unit": metric.unit.value,
            }
            for metric in MetricName
        },
        "history": {
            "filter": settings.history.filter_mode.value,
            "limit": settings.history.limit,
            "results": settings.history.results,
        },
    })
