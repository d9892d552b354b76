from pathlib import Path

from pydantic_settings import BaseSettings
from functools import lru_cache

_BACKEND_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # BaaS: "supabase" talks to the hosted project, "local" emulates it on SQLite
    BAAS_MODE: str = "supabase"
    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""  # only for admin listUsers

    # Local emulation
    LOCAL_DATABASE_URL: str = f"sqlite:///{_BACKEND_ROOT / 'conecta2.db'}"
    LOCAL_STORAGE_DIR: Path = _BACKEND_ROOT / "storage"

    # JWT (local auth emulation)
    JWT_SECRET: str = "change-this-secret-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 60
    REFRESH_EXPIRATION_MINUTES: int = 60 * 24 * 7

    # App
    APP_NAME: str = "Conecta2"
    DEBUG: bool = True
    API_PREFIX: str = "/api"

    # CORS, overridable with CORS_ORIGINS as a JSON array
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:8080",
        "http://localhost:3000",
    ]

    # Third-party polling
    CURRENCY_RATES_URL: str = "https://uy.dolarapi.com/v1/cotizaciones"
    QUOTATIONS_WEBHOOK_URL: str = ""
    POLL_INTERVAL_SECONDS: float = 300.0  # 5 minutes
    ENABLE_POLLERS: bool = True

    # Query cache
    QUERY_RETRY: int = 1
    QUERY_STALE_SECONDS: float = 300.0

    # Storage
    SIGNED_URL_EXPIRES_IN: int = 3600
    UPLOAD_CACHE_CONTROL: str = "3600"

    DEFAULT_ROLE_NAME: str = "User"

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
