"""Request utility functions for handling common request operations."""

import ipaddress
import logging

from fastapi import Request

from formguard.core.config import settings

logger = logging.getLogger(__name__)


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request, trusted_proxies: set[str] | None = None) -> str | None:
    """Get the client IP address from a request.

    X-Forwarded-For is only honoured when the direct connection comes from a
    configured trusted proxy; otherwise it can be spoofed by any client.

    Args:
        request: The FastAPI request object
        trusted_proxies: Proxy IPs allowed to set X-Forwarded-For. Defaults to
            the TRUSTED_PROXY_IPS setting of the serving app.

    Returns:
        Client IP address or None if not available
    """
    if trusted_proxies is None:
        app_settings = getattr(request.app.state, "settings", settings)
        trusted_proxies = app_settings.trusted_proxy_ips_set

    direct_ip = request.client.host if request.client else None

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and direct_ip and direct_ip in trusted_proxies:
        ip = forwarded.split(",")[0].strip()
        if _is_valid_ip(ip):
            return ip
        logger.warning(f"Invalid IP in X-Forwarded-For header: {ip}")

    return direct_ip


def wants_json(request: Request) -> bool:
    """Whether the caller expects a JSON error body rather than an HTML page."""
    if request.url.path == "/api" or request.url.path.startswith("/api/"):
        return True
    if request.headers.get("X-Requested-With", "").lower() == "xmlhttprequest":
        return True
    return "application/json" in request.headers.get("Accept", "")
