"""Services module for formguard."""

from formguard.services.csrf import CsrfError, CsrfFailure, CsrfGuard
from formguard.services.token_store import CsrfTokenStore, TokenRecord, generate_token

__all__ = [
    "CsrfError",
    "CsrfFailure",
    "CsrfGuard",
    "CsrfTokenStore",
    "TokenRecord",
    "generate_token",
]
