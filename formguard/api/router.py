"""formguard API Router - aggregates all /api routes."""

from typing import Any

from fastapi import APIRouter

from formguard.api import health, posts
from formguard.core import settings

# Main API router - all routes will be prefixed with /api
api_router = APIRouter(prefix="/api")

api_router.include_router(health.router)
api_router.include_router(posts.router)


@api_router.get("", tags=["info"])
async def api_info() -> dict[str, Any]:
    """API information and endpoint index."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "endpoints": {
            "health": "GET /api/health",
            "posts": {
                "list": "GET /api/posts",
                "create": "POST /api/posts",
            },
        },
    }
