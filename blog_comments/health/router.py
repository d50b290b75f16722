"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse

from blog_comments.config import get_settings
from blog_comments.core.database import AsyncCassandraConnection
from blog_comments.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


def _storage_ready(request: Request) -> bool:
    if getattr(request.app.state, "comment_service", None) is None:
        return False
    if get_settings().storage_backend == "memory":
        return True
    return AsyncCassandraConnection.is_connected()


async def _redis_status() -> str:
    if not get_settings().redis_enabled:
        return "disabled"
    client = get_redis()
    if client is None:
        return "unavailable"
    try:
        await client.ping()
    except Exception:  # noqa: BLE001
        return "unavailable"
    return "ok"


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness probe - storage must be reachable; Redis is optional."""
    settings = get_settings()
    storage_ok = _storage_ready(request)
    return ORJSONResponse(
        status_code=status.HTTP_200_OK
        if storage_ok
        else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if storage_ok else "not_ready",
            "environment": settings.environment,
            "debug": settings.debug,
            "checks": {
                "storage": settings.storage_backend if storage_ok else "unavailable",
                "redis": await _redis_status(),
            },
        },
    )


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
