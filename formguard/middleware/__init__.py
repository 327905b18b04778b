"""Middleware module for formguard."""

from formguard.middleware.csrf import CsrfMiddleware
from formguard.middleware.rate_limit import RateLimiter, RateLimitMiddleware, rate_limit_cleanup_loop
from formguard.middleware.security_headers import SecurityHeadersMiddleware
from formguard.middleware.session import SessionMiddleware

__all__ = [
    "CsrfMiddleware",
    "RateLimiter",
    "RateLimitMiddleware",
    "SecurityHeadersMiddleware",
    "SessionMiddleware",
    "rate_limit_cleanup_loop",
]
