"""
Centralized Configuration Module
Prescription Scanner

Loads all settings from environment variables with validation.
Secrets (the Gemini API key) come from the environment or .env only.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, computed_field
from functools import lru_cache
from typing import List
import os


STORE_BACKENDS = ("json", "memory", "database")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Pydantic validates all fields at startup - fails fast on misconfiguration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────
    app_name: str = "Prescription Scanner"
    app_version: str = "1.0.0"
    app_env: str = "development"
    debug: bool = False

    # ── Server ─────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 3000

    # ── AI Configuration ───────────────────────────────────────────
    gemini_api_key: str = ""
    ai_model: str = "gemini-2.5-flash"
    ai_temperature: float = 0.1
    ai_timeout_seconds: float = 120.0  # 0 disables the timeout

    # ── Persistence ────────────────────────────────────────────────
    store_backend: str = "json"
    store_file: str = "prescriptions.json"
    database_url: str = "sqlite+aiosqlite:///./prescriptions.db"
    results_dir: str = "results"
    upload_dir: str = "uploads"

    # ── Uploads ────────────────────────────────────────────────────
    max_image_size_mb: int = 50

    # ── Rate Limiting ──────────────────────────────────────────────
    rate_limit_requests: int = 10
    rate_limit_window: int = 60  # seconds

    # ── CORS ───────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # ── Logging ────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "text"

    # ── Computed Properties ────────────────────────────────────────
    @computed_field
    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @computed_field
    @property
    def max_image_size_bytes(self) -> int:
        return self.max_image_size_mb * 1024 * 1024

    # ── Validators ─────────────────────────────────────────────────
    @field_validator("ai_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("AI temperature must be between 0.0 and 1.0")
        return v

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in STORE_BACKENDS:
            raise ValueError(f"store_backend must be one of: {', '.join(STORE_BACKENDS)}")
        return v

    def get_ai_api_key(self) -> str:
        """Get API key with explicit error if not configured."""
        key = self.gemini_api_key or os.environ.get("GEMINI_API_KEY", "")
        if not key:
            raise ValueError(
                "GEMINI_API_KEY environment variable is not set. "
                "Please configure your Gemini API key in the .env file."
            )
        return key

    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Cached settings instance.
    Called once at startup, cached for lifetime of application.
    """
    return Settings()


# Module-level convenience access
settings = get_settings()
