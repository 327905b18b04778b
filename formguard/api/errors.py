"""Error responses: JSON for API-style callers, rendered pages for browsers."""

import logging
from typing import assert_never

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from formguard.api.templating import templates
from formguard.core.config import settings
from formguard.core.request_utils import wants_json
from formguard.services.csrf import CsrfError, CsrfFailure

logger = logging.getLogger(__name__)


def csrf_error_response(request: Request, exc: CsrfError) -> Response:
    """Translate a CSRF failure into a 403 response.

    Both failure kinds get the same user-facing message so the response does
    not reveal which check failed.
    """
    match exc.failure:
        case CsrfFailure.MISSING_CREDENTIALS | CsrfFailure.INVALID_TOKEN:
            api_message = "Invalid or missing CSRF token. Please refresh the page and try again."
            page_message = "Invalid security token. Please go back and try again."
        case _:
            assert_never(exc.failure)

    if wants_json(request):
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": "error", "code": exc.code, "message": api_message},
        )

    return templates.TemplateResponse(
        request,
        "errors/403.html",
        {"title": "Forbidden", "message": page_message},
        status_code=exc.status_code,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    if wants_json(request):
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": "error", "message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return templates.TemplateResponse(
            request,
            "errors/404.html",
            {"title": "Page Not Found - 404", "url": request.url.path},
            status_code=status.HTTP_404_NOT_FOUND,
        )

    return templates.TemplateResponse(
        request,
        "errors/500.html",
        {"title": "Error", "message": exc.detail},
        status_code=exc.status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    logger.exception(f"Unhandled error for {request.method} {request.url.path}")

    app_settings = getattr(request.app.state, "settings", settings)
    message = "Something went wrong!" if app_settings.is_production else str(exc)

    if wants_json(request):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "error", "message": message},
        )

    return templates.TemplateResponse(
        request,
        "errors/500.html",
        {"title": "Server Error", "message": message},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the application's error handlers."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
