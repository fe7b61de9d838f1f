"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for AdminGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_secret -> SESSION_SECRET). Type coercion and validation are
      built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment.

Security notes:
  SESSION_SECRET is optional. When it is set, the auth service uses it in
  place of generating a per-installation secret at setup time and never
  writes it to disk. A secret shorter than 32 chars is rejected outright.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("admingate.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. Tests usually construct their own
    instance with data_dir pointing at a tmp_path and a low bcrypt cost.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # auth.json and sessions-auth.json live here. Created on first write.
    data_dir: Path = Path("data")

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string means "generate one at setup time and store it".
    session_secret: str = ""
    secure_cookies: bool = False
    token_ttl_seconds: int = Field(default=30 * 24 * 60 * 60, gt=0)
    max_sessions: int = Field(default=20, ge=1)
    # lastUsed bookkeeping is written back at most this often per session.
    session_flush_interval_seconds: float = Field(default=60.0, ge=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    auth_rate_limit: str = "10 per 15 minutes"
    rate_limit_enabled: bool = True

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_session_secret(self) -> "Settings":
        """Reject an externally supplied SESSION_SECRET that is too short.

        The secret is shared with cooperating processes, so a weak value
        weakens all of them. Leaving it empty is always allowed.
        """
        if self.session_secret and len(self.session_secret) < 32:
            raise ValueError("SESSION_SECRET must be at least 32 characters.")
        if self.debug and not self.session_secret:
            logger.info("No SESSION_SECRET supplied; one will be generated at setup time.")
        return self

    @property
    def credential_path(self) -> Path:
        return self.data_dir / "auth.json"

    @property
    def sessions_path(self) -> Path:
        return self.data_dir / "sessions-auth.json"


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly, except tests, which build isolated instances.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
