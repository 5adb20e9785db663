"""Health check endpoint for monitoring service status."""

from datetime import UTC, datetime

import redis.asyncio as redis
from starlette.requests import Request
from starlette.responses import JSONResponse

from igneo.lib.config import get_settings
from igneo.lib.store import PollerStatus
from igneo.logging import get_logger
from igneo.server._utils import get_poller

logger = get_logger("server.api.health")


async def _check_redis() -> tuple[bool, str]:
    """Check if Redis is accessible."""
    try:
        client = redis.from_url(get_settings().eventbus.redis_url)
        await client.ping()
        await client.aclose()
        return True, "ok"
    except (redis.RedisError, OSError) as e:
        logger.error("Redis health check failed: %s", e)
        return False, str(e)


async def health_check(request: Request) -> JSONResponse:
    """Return health status of the poller and its dependencies."""
    snapshot = get_poller(request).store.current
    poller_ok = snapshot.status != PollerStatus.FAILED

    checks: dict[str, dict] = {
        "poller": {
            "ok": poller_ok,
            "status": snapshot.status.value,
            "cycle": snapshot.cycle,
            "last_success_at": (
                snapshot.last_success_at.isoformat()
                if snapshot.last_success_at
                else None
            ),
            "error": snapshot.error.to_dict() if snapshot.error else None,
        },
    }
    is_healthy = poller_ok

    if get_settings().eventbus.enabled:
        redis_ok, redis_status = await _check_redis()
        checks["redis"] = {"ok": redis_ok, "status": redis_status}
        is_healthy = is_healthy and redis_ok

    return JSONResponse(
        {
            "status": "healthy" if is_healthy else "unhealthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
        },
        status_code=200 if is_healthy else 503,
    )
