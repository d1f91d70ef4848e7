"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for passgate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The app
      lifespan reads it once and injects plain values into the components it
      builds (TokenService, PasswordHasher, transports). Components never
      reach back into settings on their own.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): cross-field validation once every field is
      resolved -- the DEBUG-conditional SECRET_KEY rule and the mail transport
      prerequisites.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing and
       gateway HMAC both rely on key entropy -- a short key weakens both.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure. A random key would silently invalidate every
       outstanding session on restart.

  Mail credentials and the sender address come from the environment only.
  Nothing mail-related is hard-coded in source.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or notify/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("passgate.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    app_name: str = "passgate"
    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = "sqlite:///./passgate.db"

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    # One day. Tokens are revocable via sign-out, so a longer window is
    # acceptable here.
    token_expire_seconds: int = 86400
    # Clock skew tolerance applied to both ends of the validity window.
    token_leeway_seconds: int = 0
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Password policy
    # ------------------------------------------------------------------

    password_min_length: int = 8
    password_require_upper: bool = True
    password_require_lower: bool = True
    password_require_digit: bool = True
    password_require_symbol: bool = False
    # bcrypt cost factor. 12 is the library default; tests drop to 4.
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Mail
    # ------------------------------------------------------------------

    mail_transport: Literal["console", "smtp", "gateway"] = "console"
    mail_sender: str = ""

    smtp_host: str = ""
    smtp_port: int = 465
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_ssl: bool = True

    mail_gateway_url: str = ""
    mail_gateway_api_key: str = ""
    mail_gateway_hmac_secret: str = ""

    mail_timeout_seconds: float = 10.0
    mail_probe_timeout_seconds: float = 5.0
    mail_queue_size: int = 100
    mail_max_attempts: int = 3
    mail_retry_backoff_seconds: float = 1.0

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    signin_rate_limit: str = "10/minute"
    signup_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_mail_transport(self) -> "Settings":
        """Fail fast when the selected mail transport is missing its credentials.

        The console transport needs nothing. SMTP needs a host; the sender
        falls back to SMTP_USERNAME when MAIL_SENDER is unset. The HTTP
        gateway needs its URL, API key and HMAC secret.
        """
        if self.mail_transport == "smtp":
            if not self.smtp_host:
                raise ValueError("SMTP_HOST is required when MAIL_TRANSPORT=smtp.")
            if not (self.mail_sender or self.smtp_username):
                raise ValueError("MAIL_SENDER or SMTP_USERNAME is required when MAIL_TRANSPORT=smtp.")
        elif self.mail_transport == "gateway":
            missing = [
                name
                for name, value in (
                    ("MAIL_GATEWAY_URL", self.mail_gateway_url),
                    ("MAIL_GATEWAY_API_KEY", self.mail_gateway_api_key),
                    ("MAIL_GATEWAY_HMAC_SECRET", self.mail_gateway_hmac_secret),
                )
                if not value
            ]
            if missing:
                raise ValueError(f"{', '.join(missing)} required when MAIL_TRANSPORT=gateway.")
        if self.mail_max_attempts < 1:
            raise ValueError("MAIL_MAX_ATTEMPTS must be at least 1.")
        return self

    @property
    def effective_mail_sender(self) -> str:
        """Sender address for outbound mail. Empty for the console transport."""
        return self.mail_sender or self.smtp_username


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
