"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from dropship_service import __version__
from dropship_service.api.deps import database_ready
from dropship_service.config import Settings, get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status and version information without touching
    any dependency.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "postgres": "configured",
            "supplier_api": "configured" if settings.supplier_credentials_configured else "missing credentials",
            "redis": "configured",
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    response: Response,
    db_ok: bool = Depends(database_ready),
    settings: Settings = Depends(get_settings),
) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Verifies the database answers and supplier credentials are present.
    Answers 503 when any check fails.
    """
    checks = {
        "postgres": db_ok,
        "supplier_credentials": settings.supplier_credentials_configured,
    }
    ready = all(checks.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(ready=ready, checks=checks)


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Returns 200 while the process is serving requests."""
    return {"status": "alive"}
