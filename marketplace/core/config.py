"""
Configuration helpers for the marketplace backend.

Routers and services read settings through get_settings() instead of touching
os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
import os

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    database_url: str
    port: int
    cors_origins: tuple[str, ...]
    rate_limit_max: int
    rate_limit_window_seconds: int
    max_body_bytes: int
    session_ttl_seconds: int
    password_reset_ttl: int
    default_page_limit: int
    max_page_limit: int
    log_level: str
    public_base_url: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_from: str


@lru_cache
def get_settings() -> Settings:
    """Read the current environment (and .env, if present) and build a Settings instance."""
    load_dotenv(override=False)

    def _int(value: str | None, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _csv(value: str | None) -> tuple[str, ...]:
        return tuple(item.strip().rstrip("/") for item in (value or "").split(",") if item.strip())

    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./marketplace.db"),
        port=_int(os.getenv("PORT"), 7001),
        cors_origins=_csv(os.getenv("CORS_ORIGINS", "http://localhost:3000")),
        rate_limit_max=_int(os.getenv("RATE_LIMIT_MAX"), 100),
        rate_limit_window_seconds=_int(os.getenv("RATE_LIMIT_WINDOW_SECONDS"), 3600),
        max_body_bytes=_int(os.getenv("MAX_BODY_BYTES"), 10 * 1024),
        session_ttl_seconds=_int(os.getenv("SESSION_TTL_SECONDS"), 90 * 24 * 3600),
        password_reset_ttl=_int(os.getenv("PASSWORD_RESET_TTL"), 600),
        default_page_limit=_int(os.getenv("DEFAULT_PAGE_LIMIT"), 100),
        max_page_limit=_int(os.getenv("MAX_PAGE_LIMIT"), 1000),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:7001").rstrip("/"),
        smtp_host=os.getenv("SMTP_HOST", ""),
        smtp_port=_int(os.getenv("SMTP_PORT"), 465),
        smtp_user=os.getenv("SMTP_USER", ""),
        smtp_password=os.getenv("SMTP_PASSWORD", ""),
        smtp_from=os.getenv("SMTP_FROM", os.getenv("SMTP_USER", "")),
    )
