"""Health check endpoints for load balancers and monitoring."""

from datetime import datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight health check for load balancer (no flag store check).

    Returns 200 OK if the service is running.
    """
    return {
        "status": "ok",
        "service": "tenant-onboarding",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
    }


def _check_flag_store() -> str:
    backend = settings.flag_store_backend.lower()
    if backend == "redis":
        from app.utils.flag_store import get_redis

        get_redis(settings).ping()
    elif backend == "sql":
        from app.database import engine

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    return "ok"


@router.get("/health/ready")
async def readiness_check():
    """Readiness check: pings the configured flag store backend.

    Returns 503 if the backend cannot be reached.
    """
    checks = {
        "service": "ok",
        "flag_store": "unknown",
    }
    overall_healthy = True

    try:
        checks["flag_store"] = _check_flag_store()
    except Exception as e:
        checks["flag_store"] = f"error: {str(e)[:100]}"
        overall_healthy = False

    return JSONResponse(
        status_code=status.HTTP_200_OK if overall_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if overall_healthy else "unhealthy",
            "service": "tenant-onboarding",
            "backend": settings.flag_store_backend,
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
