"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly. The application factory (api.main.create_app)
calls get_settings() once and passes the resulting object by reference into
the credential codec and token service.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, bcrypt_rounds -> BCRYPT_ROUNDS).

  @model_validator(mode="after"): Enforces the signing-secret policy once,
      at startup. A missing or short SECRET_KEY raises ConfigurationError,
      which is not a ValueError, so pydantic lets it propagate unwrapped and
      the process refuses to start instead of failing per request.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigurationError

logger = logging.getLogger("ridehail.config")

MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Only SECRET_KEY is mandatory. Everything else has a default suitable for
    local development against a SQLite file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # Development mode: error responses include stack and internal reason.
    debug: bool = False
    # Empty string is the sentinel for "not configured"; the validator
    # below turns it into a startup failure.
    secret_key: str = ""
    database_url: str = "sqlite:///ridehail_auth.db"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=10, ge=4, le=31)
    secure_cookies: bool = False
    revocation_purge_interval_seconds: float = Field(default=3600, gt=0)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Refuse to build settings without a usable signing secret.

        No fallback key is generated, even with DEBUG set.
        """
        if not self.secret_key:
            raise ConfigurationError(
                "SECRET_KEY is required. Set SECRET_KEY in your environment or .env file."
            )
        if len(self.secret_key) < MIN_SECRET_LENGTH:
            raise ConfigurationError(f"SECRET_KEY must be at least {MIN_SECRET_LENGTH} characters.")
        if self.debug:
            logger.warning("DEBUG is enabled: error responses include stack traces.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
