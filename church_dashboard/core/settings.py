from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    app_name: str = "Church Dashboard"
    debug: bool = False
    log_level: str = "INFO"
    logs_dir: Path = Path("logs")

    # Backend API
    api_base_url: str = "http://localhost:8000"
    tenant_id: str | None = None
    auth_token: str | None = None

    # HTTP client
    http_timeout_seconds: float = 30.0

    # List screens
    lookup_debounce_ms: int = 300
    cursor_param: str = "cursor"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v):
        if not v:
            raise ValueError("API_BASE_URL must be set")
        return v.rstrip("/")

    @field_validator("lookup_debounce_ms")
    @classmethod
    def validate_lookup_debounce_ms(cls, v):
        if v < 0:
            raise ValueError("LOOKUP_DEBOUNCE_MS must not be negative")
        return v

    @property
    def lookup_debounce_seconds(self) -> float:
        return self.lookup_debounce_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
