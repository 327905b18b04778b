"""Opaque session-id cookie middleware.

Supplies the session key the CSRF guard binds tokens to. A valid id
presented by the client is exposed as ``request.state.session_id``. When
none is presented a new id is minted, exposed as
``request.state.new_session_id`` and set on the response; it only becomes
the client's session once the browser sends it back.
"""

import logging
import re
import secrets

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "sessionId"
DEFAULT_MAX_AGE_SECONDS = 24 * 60 * 60

_SESSION_ID_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def generate_session_id() -> str:
    return secrets.token_hex(32)


def is_valid_session_id(value: str | None) -> bool:
    return bool(value) and _SESSION_ID_PATTERN.match(value) is not None


def get_presented_session_id(request: Request) -> str | None:
    """Session id the client sent with this request, if any.

    Falls back to the raw cookie when SessionMiddleware is not installed.
    """
    if hasattr(request.state, "session_id"):
        return request.state.session_id
    return request.cookies.get(SESSION_COOKIE_NAME) or None


class SessionMiddleware(BaseHTTPMiddleware):
    """Assigns every client an opaque random session id cookie."""

    def __init__(
        self,
        app: ASGIApp,
        secure: bool = False,
        max_age: int = DEFAULT_MAX_AGE_SECONDS,
    ) -> None:
        super().__init__(app)
        self.secure = secure
        self.max_age = max_age

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        presented = request.cookies.get(SESSION_COOKIE_NAME)
        new_session_id: str | None = None

        if is_valid_session_id(presented):
            request.state.session_id = presented
        else:
            if presented:
                logger.debug("Ignoring malformed session cookie")
            request.state.session_id = None
            new_session_id = generate_session_id()
            request.state.new_session_id = new_session_id

        response = await call_next(request)

        if new_session_id is not None:
            response.set_cookie(
                SESSION_COOKIE_NAME,
                new_session_id,
                max_age=self.max_age,
                httponly=True,
                secure=self.secure,
                samesite="strict",
            )

        return response
