"""
Liveness and readiness endpoints.
"""

import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from viralboost.services.redis_client import redis_client

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "viralboost"}


@router.get("/readyz")
async def readyz(request: Request):
    """
    Readiness: the store answers and the realtime hub is up.

    Redis is reported but optional; rate limiting fails open without it.
    """
    checks = {}
    overall_ok = True

    t0 = time.time()
    store = getattr(request.app.state, "store", None)
    if store is None:
        checks["store"] = {"ok": False, "error": "Store not initialized"}
        overall_ok = False
    else:
        try:
            health = await store.health_check()
            checks["store"] = {
                "ok": bool(health.get("healthy")),
                "backend": health.get("backend"),
                "latency_ms": round((time.time() - t0) * 1000, 1),
            }
            if not health.get("healthy"):
                checks["store"]["error"] = health.get("error", "Store unhealthy")
            overall_ok = overall_ok and bool(health.get("healthy"))
        except Exception as e:
            checks["store"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
            overall_ok = False

    hub = getattr(request.app.state, "hub", None)
    checks["realtime"] = {
        "ok": hub is not None,
        "online_users": len(hub.presence) if hub else 0,
        "buffered_messages": hub.public_buffer_size if hub else 0,
    }
    overall_ok = overall_ok and hub is not None

    if redis_client.configured:
        checks["redis"] = {"ok": await redis_client.ping(), "required": False}
    else:
        checks["redis"] = {"ok": None, "configured": False}

    body = {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
    return JSONResponse(body, status_code=200 if overall_ok else 503)
