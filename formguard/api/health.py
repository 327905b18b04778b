"""Health check endpoint."""

import time
from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel

from formguard.core import settings

router = APIRouter(tags=["health"])

_started_at = time.monotonic()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    uptime: float
    environment: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness probe with process uptime in seconds."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(UTC),
        uptime=round(time.monotonic() - _started_at, 3),
        environment=settings.environment,
    )
