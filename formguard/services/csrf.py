"""CSRF guard - double-submit-cookie token issue, validation and rotation.

Safe requests (GET, HEAD, OPTIONS) always receive a fresh token. Unsafe
requests must echo the current token for their session; a successful check
consumes it and a new token is issued in its place, so a captured token can
be replayed at most once.
"""

import hmac
import threading
from enum import Enum

from formguard.core.logging import get_logger
from formguard.services.token_store import CsrfTokenStore, generate_token

logger = get_logger("csrf")

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

CSRF_ERROR_CODE = "EBADCSRFTOKEN"

DEFAULT_TOKEN_TTL_SECONDS = 3600


class CsrfFailure(str, Enum):
    """Why an unsafe request was rejected."""

    MISSING_CREDENTIALS = "missing_credentials"
    INVALID_TOKEN = "invalid_token"


class CsrfError(Exception):
    """Unsafe request failed CSRF validation."""

    code = CSRF_ERROR_CODE
    status_code = 403

    def __init__(self, failure: CsrfFailure):
        self.failure = failure
        if failure is CsrfFailure.MISSING_CREDENTIALS:
            message = "CSRF token missing"
        else:
            message = "Invalid CSRF token"
        super().__init__(message)


class CsrfGuard:
    """Issues and validates per-session anti-forgery tokens."""

    def __init__(self, store: CsrfTokenStore, ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS):
        self.store = store
        self.ttl_seconds = ttl_seconds
        # Serializes compare-and-rotate so one token cannot be consumed twice
        self._rotate_lock = threading.Lock()

    @staticmethod
    def is_safe_method(method: str) -> bool:
        return method.upper() in SAFE_METHODS

    def issue(self, session_key: str) -> str:
        """Mint a token for session_key, replacing any existing one.

        Two tabs loading pages for the same session overwrite each other's
        token; only the most recently issued one validates.
        """
        token = generate_token()
        self.store.put(session_key, token, self.ttl_seconds)
        return token

    def validate_and_rotate(self, session_key: str | None, candidate: str | None) -> str:
        """Check candidate against the stored token and rotate it.

        Returns:
            The replacement token for the session.

        Raises:
            CsrfError: MISSING_CREDENTIALS if the session key or candidate is
                absent, INVALID_TOKEN if there is no live record or the
                candidate does not match exactly.
        """
        if not session_key or not candidate:
            raise CsrfError(CsrfFailure.MISSING_CREDENTIALS)

        with self._rotate_lock:
            record = self.store.get(session_key)
            if record is None or record.is_expired(self.store.now()):
                raise CsrfError(CsrfFailure.INVALID_TOKEN)

            if not hmac.compare_digest(
                candidate.encode("utf-8"), record.token.encode("utf-8")
            ):
                raise CsrfError(CsrfFailure.INVALID_TOKEN)

            return self.issue(session_key)
