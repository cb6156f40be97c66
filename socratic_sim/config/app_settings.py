"""
Service settings read from the environment.
"""

import os
from typing import List, Optional

from pydantic import BaseModel, Field, SecretStr

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class AppSettings(BaseModel):
    """HTTP service and persistence settings."""
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[SecretStr] = None

    debug: bool = False
    allowed_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    rate_limit: str = "10/minute"
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    max_cached_sessions: int = Field(default=100, ge=1)
    session_idle_seconds: float = Field(default=1800.0, gt=0)

    @property
    def persistence_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)


def load_app_settings() -> AppSettings:
    """Create settings from environment variables."""
    settings = AppSettings(
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_service_key=SecretStr(os.getenv("SUPABASE_SERVICE_KEY")) if os.getenv("SUPABASE_SERVICE_KEY") else None,
        debug=_env_flag("SIMULATOR_DEBUG"),
        rate_limit=os.getenv("SIMULATOR_RATE_LIMIT", "10/minute"),
        host=os.getenv("SIMULATOR_HOST", "0.0.0.0"),
        port=int(os.getenv("SIMULATOR_PORT", "8000")),
        max_cached_sessions=int(os.getenv("SIMULATOR_MAX_CACHED_SESSIONS", "100")),
        session_idle_seconds=float(os.getenv("SIMULATOR_SESSION_IDLE_SECONDS", "1800")),
    )

    origins = os.getenv("SIMULATOR_ALLOWED_ORIGINS")
    if origins:
        settings.allowed_origins = [o.strip() for o in origins.split(",") if o.strip()]

    return settings
