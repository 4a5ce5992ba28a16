# ---
# File: health/routes.py
# Purpose: Health endpoints for readiness, dependency checks, and keep-alive monitoring
# ---

import time

from fastapi import APIRouter, Request

router = APIRouter(prefix="/api/v1/health", tags=["Health"])


def _uptime_seconds(request: Request) -> int:
    return int(time.time() - request.app.state.started_at)


async def check_store(request: Request) -> dict:
    """
    Persistence health check.

    Runs the store's ping. Any failure is reported, never raised.
    """
    detail = {"status": "ok"}
    try:
        if not await request.app.state.store.ping():
            detail = {"status": "error", "error": "Store ping failed"}
    except Exception as exc:
        detail = {"status": "error", "error": str(exc)}
    return detail


@router.get("")
async def health(request: Request):
    """
    Primary health endpoint, used by hosting platforms for readiness probes
    and by the keep-alive pinger.

    Returns:
        - service: Application name
        - status: "ok" when every check passes, "degraded" otherwise
        - uptime_seconds: How long the server has been running
        - checks: store status and realtime topic/connection counts
    """
    store_status = await check_store(request)
    return {
        "service": "statuspage-api",
        "status": "ok" if store_status["status"] == "ok" else "degraded",
        "uptime_seconds": _uptime_seconds(request),
        "checks": {
            "database": store_status,
            "realtime": request.app.state.registry.stats(),
        },
    }


@router.get("/keepalive")
async def keepalive_status(request: Request):
    """
    Keep-alive statistics.

    Example response (enabled):
        {
            "enabled": true,
            "target_url": "https://status.example.com/health",
            "interval_seconds": 600,
            "timeout_seconds": 10,
            "statistics": {
                "total_pings": 42,
                "successful_pings": 40,
                "failed_pings": 2,
                "success_rate_percent": 95.24
            },
            "uptime_seconds": 12600
        }
    """
    pinger = request.app.state.keepalive
    if not pinger.enabled:
        return {
            "enabled": False,
            "reason": "KEEPALIVE_URL environment variable not set",
            "uptime_seconds": _uptime_seconds(request),
        }
    return {
        "enabled": True,
        "running": pinger.running,
        "target_url": pinger.url,
        "interval_seconds": pinger.interval_seconds,
        "timeout_seconds": pinger.timeout_seconds,
        "statistics": pinger.stats(),
        "uptime_seconds": _uptime_seconds(request),
    }
