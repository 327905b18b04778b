"""Server-rendered pages.

Every page receives the current CSRF token from ``request.state.csrf_token``
(set by CsrfMiddleware) and embeds it in its forms and in
``window.csrfToken`` for script-issued requests.
"""

import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, PlainTextResponse

from formguard.api.templating import templates
from formguard.core import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])


def _page_context(request: Request, **extra) -> dict:
    context = {
        "app_name": settings.app_name,
        "csrf_token": getattr(request.state, "csrf_token", ""),
    }
    context.update(extra)
    return context


@router.get("/", response_class=HTMLResponse)
async def home(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "index.html", _page_context(request, title="Home"))


@router.get("/contact", response_class=HTMLResponse)
async def contact_form(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request, "contact.html", _page_context(request, title="Contact", submitted=False)
    )


@router.post("/contact", response_class=HTMLResponse)
async def contact_submit(
    request: Request,
    name: str = Form(..., max_length=100),
    message: str = Form(..., max_length=2000),
) -> HTMLResponse:
    logger.info(f"Contact form submitted ({len(message)} chars)")
    return templates.TemplateResponse(
        request,
        "contact.html",
        _page_context(request, title="Contact", submitted=True, name=name),
    )


@router.get("/robots.txt", response_class=PlainTextResponse)
async def robots_txt() -> str:
    return "User-agent: *\nDisallow: /api/\n"
