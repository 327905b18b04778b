"""formguard configuration via pydantic-settings.

All settings can be overridden with environment variables (upper-case field
names) or a local ``.env`` file.
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "formguard"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    host: str = "localhost"
    port: int = 3000

    # Comma-separated list, e.g. "http://localhost:3000,https://example.com"
    cors_origins: str = "http://localhost:3000"
    trusted_proxy_ips: str = ""

    # CSRF double-submit cookie
    csrf_token_ttl_seconds: int = 3600
    csrf_sweep_interval_seconds: int = 3600
    csrf_exempt_prefixes: list[str] = ["/api"]
    # Mint a throwaway session key on safe requests that arrive without one.
    # Tokens issued against such a key can never be validated.
    csrf_ephemeral_session_fallback: bool = True

    session_max_age_seconds: int = 24 * 60 * 60

    rate_limit_enabled: bool = True

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {v!r}"
            )
        return level

    @field_validator(
        "csrf_token_ttl_seconds",
        "csrf_sweep_interval_seconds",
        "session_max_age_seconds",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive number of seconds")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def trusted_proxy_ips_set(self) -> set[str]:
        return {ip.strip() for ip in self.trusted_proxy_ips.split(",") if ip.strip()}

    def check_security_configuration(self) -> list[str]:
        """Return human-readable warnings for risky but valid configurations."""
        warnings: list[str] = []

        if self.is_production and self.debug:
            warnings.append("DEBUG is enabled in production; error pages will expose details")

        if "*" in self.cors_origins_list:
            warnings.append(
                "CORS_ORIGINS contains '*' while credentials are allowed; "
                "browsers will reject credentialed cross-origin requests"
            )

        if self.csrf_ephemeral_session_fallback:
            warnings.append(
                "CSRF_EPHEMERAL_SESSION_FALLBACK is enabled; clients without a session "
                "cookie receive tokens that can never validate"
            )

        if not self.is_production:
            warnings.append(
                f"ENVIRONMENT is {self.environment!r}; cookies are sent without the Secure flag"
            )

        return warnings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
