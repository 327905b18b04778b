"""Pytest configuration and fixtures for formguard tests."""

import os
import secrets

import pytest
from fastapi import FastAPI, Form, Request
from fastapi.testclient import TestClient

# Set test environment variables before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
# Rate limiting has its own tests; keep it out of the way elsewhere
os.environ["RATE_LIMIT_ENABLED"] = "false"

from formguard.core.config import Settings  # noqa: E402
from formguard.middleware.csrf import CsrfMiddleware  # noqa: E402
from formguard.middleware.session import SESSION_COOKIE_NAME, SessionMiddleware  # noqa: E402
from formguard.services.csrf import CsrfGuard  # noqa: E402
from formguard.services.token_store import CsrfTokenStore  # noqa: E402


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def new_session_id() -> str:
    return secrets.token_hex(32)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> CsrfTokenStore:
    return CsrfTokenStore(sweep_interval=3600, clock=clock)


@pytest.fixture
def guard(store) -> CsrfGuard:
    return CsrfGuard(store, ttl_seconds=3600)


def build_guarded_app(
    guard: CsrfGuard,
    with_sessions: bool = False,
    ephemeral_session_fallback: bool = True,
) -> FastAPI:
    """Minimal app with the CSRF middleware in front of a few echo routes."""
    app = FastAPI()

    @app.get("/form")
    async def form_page(request: Request) -> dict:
        return {"csrf_token": getattr(request.state, "csrf_token", None)}

    @app.post("/submit")
    async def submit(request: Request) -> dict:
        return {"ok": True, "csrf_token": request.state.csrf_token}

    @app.post("/form-submit")
    async def form_submit(request: Request, title: str = Form(...)) -> dict:
        return {"ok": True, "title": title}

    @app.post("/json-submit")
    async def json_submit(request: Request) -> dict:
        payload = await request.json()
        return {"ok": True, "title": payload.get("title")}

    @app.post("/api/hook")
    async def api_hook() -> dict:
        return {"ok": True}

    app.add_middleware(
        CsrfMiddleware,
        guard=guard,
        secure_cookie=False,
        exempt_prefixes=["/api"],
        ephemeral_session_fallback=ephemeral_session_fallback,
    )
    if with_sessions:
        app.add_middleware(SessionMiddleware, secure=False)
    return app


@pytest.fixture
def guarded_client(guard) -> TestClient:
    """Client for a guarded app without session middleware."""
    return TestClient(build_guarded_app(guard))


@pytest.fixture
def session_id() -> str:
    return new_session_id()


@pytest.fixture
def session_client(guarded_client, session_id) -> TestClient:
    """Guarded client that presents a fixed session cookie."""
    guarded_client.cookies.set(SESSION_COOKIE_NAME, session_id)
    return guarded_client


@pytest.fixture
def test_settings() -> Settings:
    return Settings(environment="test", rate_limit_enabled=False)


@pytest.fixture
def app(test_settings) -> FastAPI:
    from formguard.main import create_app

    return create_app(test_settings)


@pytest.fixture
def client(app) -> TestClient:
    """Get test client with fresh app instance."""
    return TestClient(app)
