"""
Operational endpoints.

``router`` holds the versioned RPC health check. ``ops`` holds the
unversioned liveness, readiness, info and Prometheus endpoints that load
balancers and scrapers call.
"""

import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import async_session_factory, get_db, utcnow
from ..core.observability import SERVICE_NAME, SERVICE_VERSION, get_prometheus_metrics
from ..schemas.health import HealthResponse, HealthStatus, ReadinessChecks, ReadinessResponse
from ..workers.manager import worker_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])
ops = APIRouter(tags=["ops"])

DB_DEPENDENCY = Depends(get_db)

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


async def check_database(db: AsyncSession) -> bool:
    """Run a trivial query; False when the database cannot be reached."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return False
    return True


@router.post("/ping", response_model=HealthResponse)
async def health_ping(db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """
    Report database connectivity and background worker state.

    An unreachable database degrades the status and returns 503.
    """
    database_ok = await check_database(db)
    body = HealthResponse(
        status=HealthStatus.HEALTHY if database_ok else HealthStatus.DEGRADED,
        timestamp=utcnow(),
        version=SERVICE_VERSION,
        database="ok" if database_ok else "error",
        workers=worker_manager.get_worker_status(),
    )
    return JSONResponse(status_code=200 if database_ok else 503, content=body.model_dump(mode="json"))


@ops.get("/health")
async def liveness() -> dict:
    """Liveness; never touches the database."""
    return {
        "status": HealthStatus.HEALTHY.value,
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": settings.environment,
    }


@ops.get("/ready", response_model=ReadinessResponse)
async def readiness() -> JSONResponse:
    """Ready once the database answers and every worker is running."""
    async with async_session_factory() as db:
        database_ok = await check_database(db)
    workers = worker_manager.get_worker_status()
    ready = database_ok and all(workers.values())

    body = ReadinessResponse(
        status="ready" if ready else "not_ready",
        service=SERVICE_NAME,
        checks=ReadinessChecks(database="ok" if database_ok else "error", workers=workers),
    )
    return JSONResponse(status_code=200 if ready else 503, content=body.model_dump(mode="json"))


@ops.get("/info")
async def service_info() -> dict:
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "description": "Resort booking and pricing engine",
        "environment": settings.environment,
        "features": {
            "rate_limiting": "redis" if settings.redis_url else "in-process",
            "tracing": "otlp" if settings.otlp_endpoint else "local",
            "email_notifications": bool(settings.email_api_key),
        },
        "docs": "/docs" if settings.debug else None,
    }


@ops.get("/metrics", response_class=Response)
async def prometheus_metrics() -> Response:
    return Response(content=get_prometheus_metrics(), media_type=PROMETHEUS_CONTENT_TYPE)
