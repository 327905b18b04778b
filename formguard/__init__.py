"""formguard - FastAPI web application with double-submit-cookie CSRF protection."""

__version__ = "0.1.0"
