"""formguard - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formguard.api.errors import register_exception_handlers
from formguard.api.pages import router as pages_router
from formguard.api.router import api_router
from formguard.core import Settings, get_settings, setup_logging
from formguard.core.logging import get_logger
from formguard.middleware import (
    CsrfMiddleware,
    RateLimiter,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
    SessionMiddleware,
    rate_limit_cleanup_loop,
)
from formguard.services.csrf import CsrfGuard
from formguard.services.token_store import CsrfTokenStore

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()

    token_store = CsrfTokenStore(sweep_interval=settings.csrf_sweep_interval_seconds)
    csrf_guard = CsrfGuard(token_store, ttl_seconds=settings.csrf_token_ttl_seconds)
    rate_limiter = RateLimiter()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        setup_logging(
            level=settings.log_level,
            format_type="structured" if settings.is_production else "dev",
        )
        logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")

        for warning in settings.check_security_configuration():
            logger.warning(f"SECURITY: {warning}")

        await token_store.start()

        cleanup_task = asyncio.create_task(
            rate_limit_cleanup_loop(rate_limiter), name="rate-limit-cleanup"
        )
        cleanup_task.add_done_callback(task_done_callback)

        yield

        logger.info("Shutting down...")
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        await token_store.stop()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.token_store = token_store
    app.state.csrf_guard = csrf_guard
    app.state.rate_limiter = rate_limiter

    register_exception_handlers(app)

    # Starlette runs middleware in reverse order of registration: CSRF is
    # innermost so it sees the session id assigned by SessionMiddleware.
    app.add_middleware(
        CsrfMiddleware,
        guard=csrf_guard,
        secure_cookie=settings.is_production,
        exempt_prefixes=settings.csrf_exempt_prefixes,
        ephemeral_session_fallback=settings.csrf_ephemeral_session_fallback,
    )
    app.add_middleware(
        SessionMiddleware,
        secure=settings.is_production,
        max_age=settings.session_max_age_seconds,
    )
    app.add_middleware(
        RateLimitMiddleware,
        rate_limiter=rate_limiter,
        enabled=settings.rate_limit_enabled,
        trusted_proxies=settings.trusted_proxy_ips_set,
    )
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS - MUST be outermost so CORS headers are present on ALL responses,
    # including 403 from CSRF and 429 from the rate limiter.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token"],
        max_age=86400,
    )

    app.include_router(api_router)
    app.include_router(pages_router)

    return app


# Application instance
app = create_app()


def run() -> None:
    """Run the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("formguard.main:app", host=settings.host, port=settings.port, reload=settings.debug)
