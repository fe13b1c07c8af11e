"""
Health Check Endpoints

Health, readiness, and liveness endpoints for container orchestration.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request, Response

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Returns 200 if the service is running."""
    return {
        "status": "healthy",
        "timestamp": _now(),
        "version": os.getenv("APP_VERSION", "1.0.0")
    }


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe: the process is up."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, Any]:
    """
    Readiness probe.

    Returns 503 until the workflow engine is built and its deal store
    answers a query.
    """
    checks = {}
    all_healthy = True

    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        checks["deal_store"] = "not initialized"
        all_healthy = False
    else:
        try:
            await engine.store.list(limit=1)
            checks["deal_store"] = "healthy"
        except Exception as e:
            checks["deal_store"] = f"unhealthy: {str(e)[:100]}"
            all_healthy = False

        checks["upload_store"] = engine.uploads.backend_type.value if engine.uploads else "not configured"

    if not all_healthy:
        response.status_code = 503

    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks,
        "timestamp": _now()
    }
