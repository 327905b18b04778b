"""CSRF protection middleware using the double submit cookie pattern.

Safe requests get a fresh token in the ``csrf-token`` cookie and in
``request.state.csrf_token`` for templates. Unsafe requests must echo the
current token in the ``_csrf`` body field, the ``X-CSRF-Token`` header or
the cookie itself; on success the token is rotated before the handler runs.
"""

import json
import logging

from fastapi import Request, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from formguard.api.errors import csrf_error_response
from formguard.middleware.session import get_presented_session_id
from formguard.services.csrf import CsrfError, CsrfGuard
from formguard.services.token_store import generate_token

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrf-token"
CSRF_HEADER_NAME = "x-csrf-token"
CSRF_BODY_FIELD = "_csrf"

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class CsrfMiddleware(BaseHTTPMiddleware):
    """Issue tokens on safe requests and validate + rotate them on unsafe ones."""

    def __init__(
        self,
        app: ASGIApp,
        guard: CsrfGuard,
        secure_cookie: bool = False,
        exempt_prefixes: list[str] | None = None,
        ephemeral_session_fallback: bool = True,
    ) -> None:
        super().__init__(app)
        self.guard = guard
        self.secure_cookie = secure_cookie
        self.exempt_prefixes = ["/api"] if exempt_prefixes is None else exempt_prefixes
        self.ephemeral_session_fallback = ephemeral_session_fallback

    def _is_exempt(self, path: str) -> bool:
        return any(path == prefix or path.startswith(prefix + "/") for prefix in self.exempt_prefixes)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self._is_exempt(request.url.path):
            return await call_next(request)

        if self.guard.is_safe_method(request.method):
            session_key = self._resolve_safe_session_key(request)
            if session_key is None:
                return await call_next(request)
            token = self.guard.issue(session_key)
        else:
            session_key = get_presented_session_id(request)
            candidate = await self._extract_candidate(request)
            try:
                token = self.guard.validate_and_rotate(session_key, candidate)
            except CsrfError as e:
                logger.warning(
                    f"CSRF validation failed ({e.failure.value}): {request.method} {request.url.path}"
                )
                return csrf_error_response(request, e)

        request.state.csrf_token = token
        response = await call_next(request)
        self._set_token_cookie(response, token)
        return response

    def _resolve_safe_session_key(self, request: Request) -> str | None:
        session_key = get_presented_session_id(request)
        if session_key:
            return session_key

        # Minted by SessionMiddleware for this response; the client presents it next time
        new_session_id = getattr(request.state, "new_session_id", None)
        if new_session_id:
            return new_session_id

        if not self.ephemeral_session_fallback:
            logger.debug(f"No session for {request.method} {request.url.path}; token not issued")
            return None

        logger.warning(
            f"No session for {request.method} {request.url.path}; issuing CSRF token "
            "against a one-off key that cannot be validated later"
        )
        return generate_token()

    async def _extract_candidate(self, request: Request) -> str | None:
        """Candidate token in priority order: body field, header, cookie."""
        body_token = await self._token_from_body(request)
        if body_token:
            return body_token

        header_token = request.headers.get(CSRF_HEADER_NAME)
        if header_token:
            return header_token

        return request.cookies.get(CSRF_COOKIE_NAME) or None

    async def _token_from_body(self, request: Request) -> str | None:
        content_type = request.headers.get("content-type", "").lower()

        if content_type.startswith(FORM_CONTENT_TYPES):
            # Cache the raw body so the downstream handler can read it again
            await request.body()
            try:
                async with request.form() as form:
                    value = form.get(CSRF_BODY_FIELD)
            except (StarletteHTTPException, MultiPartException) as e:
                logger.debug(f"Unparseable form body on {request.url.path}: {e}")
                return None
            return value if isinstance(value, str) else None

        if content_type.startswith("application/json"):
            body = await request.body()
            if not body:
                return None
            try:
                payload = json.loads(body)
            except ValueError:
                return None
            if isinstance(payload, dict):
                value = payload.get(CSRF_BODY_FIELD)
                return value if isinstance(value, str) else None

        return None

    def _set_token_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            CSRF_COOKIE_NAME,
            token,
            max_age=self.guard.ttl_seconds,
            httponly=False,  # Read by client script for header submission
            secure=self.secure_cookie,
            samesite="strict",
        )
