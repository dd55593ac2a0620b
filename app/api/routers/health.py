"""
Health check endpoints for monitoring and orchestration (K8s, Docker, etc.)

Provides multiple health check endpoints:
- /health: Basic liveness check (always returns 200)
- /health/db: Database connectivity check
- /health/ready: Readiness check (all dependencies healthy)
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db_session
from app.config import Settings, get_settings
from app.infrastructure.circuit_breaker import payment_breaker

logger = logging.getLogger(__name__)

router = APIRouter()

SERVICE_NAME = "lesson-booking-api"


async def _database_ok(session: AsyncSession) -> bool:
    try:
        result = await session.execute(text("SELECT 1"))
        result.scalar()
        return True
    except Exception as e:
        logger.error("Database health check failed", exc_info=e)
        return False


@router.get("/health")
async def health_check():
    """
    Basic liveness probe.

    Returns 200 OK if the application is running.
    """
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/health/db")
async def health_check_db(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
):
    """
    Database connectivity health check.

    Returns 503 Service Unavailable if database is down. In in-memory mode
    there is no database to check.
    """
    if settings.use_in_memory:
        return {"status": "healthy", "component": "database", "mode": "in_memory"}
    if await _database_ok(session):
        return {"status": "healthy", "component": "database"}
    return JSONResponse(
        status_code=503,
        content={
            "status": "unhealthy",
            "component": "database",
            "error": "Database connection failed"
        }
    )


@router.get("/health/ready")
async def health_check_ready(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
):
    """
    Readiness probe.

    Checks database connectivity and reports the payment provider circuit
    state. An open circuit degrades checkout but does not make the service
    unready: availability and holds keep working.
    """
    health_status = {
        "status": "ready",
        "checks": {
            "payment_provider_circuit": payment_breaker.current_state,
        },
    }

    if settings.use_in_memory:
        health_status["checks"]["database"] = "in_memory"
        return health_status

    if not await _database_ok(session):
        health_status["status"] = "not_ready"
        health_status["checks"]["database"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    health_status["checks"]["database"] = "healthy"
    return health_status


@router.get("/health/live")
async def health_check_live():
    """
    Alias for /health for Kubernetes liveness probe.
    """
    return {"status": "ok", "service": SERVICE_NAME}
