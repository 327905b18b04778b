"""Request payload key sanitization against NoSQL operator injection.

Keys beginning with ``$`` or containing ``.`` can be interpreted as query
operators or nested paths by document databases. ``sanitize_keys`` returns a
rewritten copy of the payload and never mutates its input.
"""

import logging
import re
from collections.abc import Callable
from typing import Any

from fastapi import HTTPException, Request, status

from formguard.core.request_utils import get_client_ip

logger = logging.getLogger(__name__)

_FORBIDDEN_KEY_CHARS = re.compile(r"^\$|\.")


def needs_sanitizing(key: str) -> bool:
    return key.startswith("$") or "." in key


def sanitize_keys(
    value: Any,
    replace_with: str = "_",
    on_sanitize: Callable[[str], None] | None = None,
) -> Any:
    """Return a copy of value with forbidden characters in mapping keys replaced.

    Args:
        value: Decoded JSON-like data (dicts, lists, scalars).
        replace_with: Replacement for a leading ``$`` and every ``.``.
        on_sanitize: Called with each original key that was rewritten.
    """
    if isinstance(value, list):
        return [sanitize_keys(item, replace_with, on_sanitize) for item in value]

    if not isinstance(value, dict):
        return value

    cleaned: dict[Any, Any] = {}
    for key, item in value.items():
        new_key = key
        if isinstance(key, str) and needs_sanitizing(key):
            new_key = _FORBIDDEN_KEY_CHARS.sub(replace_with, key)
            if on_sanitize is not None:
                on_sanitize(key)
        cleaned[new_key] = sanitize_keys(item, replace_with, on_sanitize)
    return cleaned


async def sanitized_json_body(request: Request) -> Any:
    """FastAPI dependency returning the request's JSON body with keys sanitized."""
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body must be valid JSON",
        )

    client_ip = get_client_ip(request) or "unknown"

    def _log(key: str) -> None:
        logger.warning(f"[SECURITY] Sanitized key {key!r} in request from {client_ip}")

    return sanitize_keys(payload, on_sanitize=_log)
