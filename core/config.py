"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Buildkit happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_cookie_name -> SESSION_COOKIE_NAME). Type coercion and
      validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used to resolve the session renewal
      threshold relative to the session lifetime.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("buildkit.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'buildkit_auth.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `database_url` reads from DATABASE_URL.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_cookie_name: str = "auth_session"
    secure_cookies: bool = False
    # 30 days. The cookie expiry tracks the session row's expires_at.
    session_expire_seconds: int = 30 * 24 * 3600
    # A valid session is renewed once its remaining lifetime drops to this
    # many seconds. 0 is the sentinel for "half the session lifetime".
    session_renew_threshold_seconds: int = 0

    # ------------------------------------------------------------------
    # Email verification
    # ------------------------------------------------------------------

    verification_code_length: int = 4
    verification_code_expire_seconds: int = 15 * 60

    # ------------------------------------------------------------------
    # Outbound email (optional -- empty key means log-only delivery)
    # ------------------------------------------------------------------

    resend_api_key: str = ""
    email_from: str = "Buildkit <noreply@buildkit.app>"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_lifetimes(self) -> "Settings":
        """Reject unusable lifetimes and resolve the renewal threshold sentinel.

        The renewal threshold may not exceed the session lifetime: a session
        is never further than its lifetime away from expiry, so a larger
        threshold would be indistinguishable from renewing on every request.
        """
        if self.session_expire_seconds <= 0:
            raise ValueError("SESSION_EXPIRE_SECONDS must be positive.")
        if self.verification_code_expire_seconds <= 0:
            raise ValueError("VERIFICATION_CODE_EXPIRE_SECONDS must be positive.")
        if self.verification_code_length < 1:
            raise ValueError("VERIFICATION_CODE_LENGTH must be at least 1.")
        if self.session_renew_threshold_seconds < 0:
            raise ValueError("SESSION_RENEW_THRESHOLD_SECONDS must not be negative.")
        if self.session_renew_threshold_seconds == 0:
            self.session_renew_threshold_seconds = self.session_expire_seconds // 2
        if self.session_renew_threshold_seconds > self.session_expire_seconds:
            raise ValueError("SESSION_RENEW_THRESHOLD_SECONDS must not exceed SESSION_EXPIRE_SECONDS.")
        if not self.resend_api_key:
            logger.info("RESEND_API_KEY not set -- outbound email will be logged, not sent.")
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
