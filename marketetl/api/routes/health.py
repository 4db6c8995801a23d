"""Health check endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from marketetl.core.config import settings
from marketetl.core.logging import get_logger
from marketetl.database.connection import get_database
from marketetl.schemas.common import HealthResponse


router = APIRouter(prefix="/health")

logger = get_logger("health")


async def db_healthcheck() -> bool:
    """Check record store health."""
    try:
        return await get_database().healthcheck()
    except RuntimeError as e:
        logger.warning(f"Database healthcheck failed: {e}")
        return False


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of the API and its record store.",
)
async def health_check() -> HealthResponse:
    checks = {"database": await db_healthcheck()}

    return HealthResponse(
        status="healthy" if all(checks.values()) else "unhealthy",
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )
