"""
Health check endpoints.

Provides endpoints for monitoring and load balancer health checks.
"""

import redis
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import SQLAlchemyError

from api.dependencies import get_cache, get_database
from api.schemas import HealthResponse, ReadinessResponse
from infra.database import Database
from infra.logging import get_logger


logger = get_logger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check.

    Returns 200 if the service is running.
    Used by load balancers and orchestration systems.
    """
    return HealthResponse()


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(
    response: Response,
    db: Database = Depends(get_database),
    cache: redis.Redis = Depends(get_cache),
) -> ReadinessResponse:
    """
    Readiness check.

    Checks the database with SELECT 1 and Redis with PING.
    Returns 503 when either check fails.
    """
    checks = {"database": "ok", "cache": "ok"}

    try:
        db.ping()
    except SQLAlchemyError as e:
        logger.warning("Database readiness check failed", error=str(e))
        checks["database"] = "error"

    try:
        cache.ping()
    except redis.RedisError as e:
        logger.warning("Redis readiness check failed", error=str(e))
        checks["cache"] = "error"

    if "error" in checks.values():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="unavailable", checks=checks)

    return ReadinessResponse(status="ready", checks=checks)
