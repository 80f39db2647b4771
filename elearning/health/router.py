"""Health check endpoints."""

from fastapi import APIRouter, Request

from elearning.config import get_settings
from elearning.core.database import AsyncCassandraConnection
from elearning.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict:
    """Readiness probe - storage connection and completion worker state."""
    settings = get_settings()
    cassandra_ok = AsyncCassandraConnection.is_connected()
    dispatcher = getattr(request.app.state, "completion_dispatcher", None)

    return {
        "status": "ready" if cassandra_ok else "degraded",
        "environment": settings.environment,
        "cassandra": cassandra_ok,
        "redis": get_redis() is not None,
        "certificates": settings.certificates_configured,
        "completion_dispatcher": dispatcher.get_stats() if dispatcher else None,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
