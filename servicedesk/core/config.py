# servicedesk/core/config.py
"""
Application settings loaded from environment variables (and .env).
"""
import os
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = os.path.join(os.path.dirname(__file__), "..", "..", "data")


def _default_database_url() -> str:
    database_file = os.path.join(DATA_DIR, "db", "servicedesk.sqlite")
    os.makedirs(os.path.dirname(database_file), exist_ok=True)
    return f"sqlite+aiosqlite:///{database_file}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    secret_key: str
    app_env: str = "development"
    log_level: str = "INFO"

    # --- Database ---
    database_url: str | None = None
    db_timeout_seconds: float = 5.0

    # --- Auth ---
    access_token_lifetime_seconds: int = 43200  # 12 hours
    admin_email: str | None = None
    admin_password: str | None = None
    admin_username: str = "supervisor"

    # --- HTTP ---
    allowed_origins: str = "http://localhost:5173"
    allowed_hosts: str = "localhost,127.0.0.1"
    rate_limit_enabled: bool = True
    kiosk_rate_limit: str = "20/minute"

    # --- Realtime fanout ---
    redis_url: str | None = None

    # --- Business hours (kiosk) ---
    business_timezone: str = "UTC"
    business_open: str = "08:00"
    business_close: str = "17:00"
    enforce_business_hours: bool = False

    audit_log_file: str = os.path.join("logs", "audit.log")

    @property
    def resolved_database_url(self) -> str:
        return self.database_url or _default_database_url()

    @property
    def origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def hosts(self) -> list[str]:
        return [h.strip() for h in self.allowed_hosts.split(",") if h.strip()]


@lru_cache
def get_settings() -> Settings:
    """
    Returns the process-wide settings.
    Missing SECRET_KEY is fatal, like the rest of the auth configuration.
    """
    return Settings()
