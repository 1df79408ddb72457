"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the auth service happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET). Type coercion and
      validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Development mode generates a signing
      secret with a warning; production mode refuses to start without one.

Security notes:
  A signing secret shorter than 32 chars is rejected outright. HS256 relies on
  key entropy -- a short key makes offline forging of access tokens feasible.

  In production mode a missing ACCESS_TOKEN_SECRET is a hard startup failure.
  Refresh sessions are persisted and survive a restart; a random per-process
  secret would silently invalidate every outstanding access token instead.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")

# Lower bounds applied to the configured lifetimes. A zero or negative TTL in
# the environment still yields a usable token.
_MIN_ACCESS_TTL_SECONDS = 60
_MIN_REFRESH_TTL_SECONDS = 24 * 60 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated for local
    development and tests without a real .env file. The model_validator
    enforces production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = 4000
    # Single browser origin allowed to call the API with credentials.
    client_url: str = "http://localhost:5173"
    # "production" enables Secure cookies and the strict secret policy.
    environment: str = "development"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev secret or raises, so callers never see "".
    access_token_secret: str = ""
    access_token_ttl_minutes: int = 20
    refresh_token_ttl_days: int = 14

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    # Empty string means the store's default directory (auth/data/).
    data_dir: str = ""
    session_sweep_interval_seconds: int = 3600

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def access_token_ttl_seconds(self) -> int:
        return max(self.access_token_ttl_minutes * 60, _MIN_ACCESS_TTL_SECONDS)

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return max(self.refresh_token_ttl_days * 24 * 60 * 60, _MIN_REFRESH_TTL_SECONDS)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_access_token_secret(self) -> "Settings":
        """Enforce the signing secret policy.

        Development mode: auto-generate a random secret with a warning.
            Access tokens will not survive restart -- clients recover through
            /auth/session with their persisted refresh cookie.

        Production mode: refuse to start if ACCESS_TOKEN_SECRET is missing.

        Both modes: reject secrets shorter than 32 characters.
        """
        if not self.access_token_secret:
            if self.is_production:
                raise ValueError(
                    "ACCESS_TOKEN_SECRET is required in production mode. "
                    "Set ACCESS_TOKEN_SECRET in your environment or .env file."
                )
            self.access_token_secret = secrets.token_hex(32)
            logger.warning(
                "WARNING: Using auto-generated ACCESS_TOKEN_SECRET. " "Access tokens will not persist across restarts."
            )
        if len(self.access_token_secret) < 32:
            raise ValueError("ACCESS_TOKEN_SECRET must be at least 32 characters.")
        if self.session_sweep_interval_seconds <= 0:
            raise ValueError("SESSION_SWEEP_INTERVAL_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
