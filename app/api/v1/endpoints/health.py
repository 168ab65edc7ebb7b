"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from app.config import settings
from app.core.redis_client import check_redis_connection
from app.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health check including storage and cache status."""

    database: str
    redis: str


def _label(healthy: bool) -> str:
    return "healthy" if healthy else "unhealthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Basic liveness check."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Health check with database and Redis status.

    The directory cache is optional, so a Redis outage only degrades status.
    """
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()

    return DetailedHealthResponse(
        status="healthy" if db_healthy and redis_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=_label(db_healthy),
        redis=_label(redis_healthy),
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """Simple ping endpoint."""
    return {"message": "pong"}
