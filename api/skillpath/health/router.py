"""Health check endpoints."""

from fastapi import APIRouter, Request

from skillpath.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe - checks if the services are wired."""
    settings = get_settings()
    state = request.app.state
    services_ready = bool(
        getattr(state, "progress_service", None)
        and getattr(state, "certificate_service", None)
    )
    return {
        "status": "ready" if services_ready else "degraded",
        "environment": settings.environment,
        "storage_backend": settings.storage_backend,
        "distributed_locks": bool(getattr(state, "redis", None)),
        "renderer_configured": settings.renderer_configured,
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
