"""Configuration and environment loading for Pantry Auth."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Supabase
    supabase_url: str
    supabase_key: str

    # Platform owner bootstrap
    platform_owner_email: str
    platform_login_url: str = "http://localhost:5173/login"
    app_dashboard_url: str = "http://localhost:5173/dashboard"
    cors_origins: list[str] = ["http://localhost:5173"]

    # Session persistence
    session_storage_path: Path = Path("data/session.json")
    session_storage_key: str = "supabase.auth.token"

    # Idle timeout, independent of token expiry
    inactivity_timeout_hours: float = 24
    inactivity_check_interval: int = 300  # Seconds between idle checks

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
