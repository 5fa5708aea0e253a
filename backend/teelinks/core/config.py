"""Centralized application settings using pydantic settings."""

from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Look for .env in the backend directory or project root
env_path = Path(__file__).parent.parent.parent / ".env"
if not env_path.exists():
    env_path = Path(__file__).parent.parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)

STORAGE_BUCKET = "product-images"


class Settings(BaseSettings):
    """Environment-aware configuration (store credentials, admin secret, CORS)."""

    # Application settings
    app_name: str = "Teelinks Catalog API"
    log_level: str = "INFO"
    port: int = Field(default=3001, description="Port used by the console entry point")

    # Admin guard
    admin_secret_key: str | None = Field(
        default=None,
        description="Shared secret expected in the x-admin-secret-key header",
    )
    allow_open_admin: bool = Field(
        default=False,
        description="Let mutating routes through when no admin secret is configured",
    )

    # Relational store (mandatory)
    database_url: str = Field(..., description="Database connection URL")

    # Object storage (mandatory)
    supabase_url: str = Field(..., description="Storage project URL")
    supabase_service_key: str = Field(..., description="Storage service-role key")
    storage_timeout_seconds: float = 10.0

    # Staging directory for multipart uploads before they are pushed to storage
    uploads_dir: str = Field(
        default="storage/uploads",
        description="Directory for staging uploaded images (absolute or relative path)",
    )

    # CORS settings - stored as string, converted to list via property
    cors_origins_raw: str | None = Field(
        default=None,
        validation_alias="CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins",
        exclude=True,
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def storage_bucket(self) -> str:
        return STORAGE_BUCKET

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS_ORIGINS from comma-separated string to list."""
        if self.cors_origins_raw is None or not self.cors_origins_raw.strip():
            return ["*"]
        origins = [
            origin.strip().rstrip("/")
            for origin in self.cors_origins_raw.split(",")
            if origin.strip()
        ]
        return origins if origins else ["*"]

    @field_validator("database_url", mode="before")
    @classmethod
    def fix_database_url(cls, v: str | None) -> str | None:
        """Fix Heroku/Supabase DATABASE_URL format (postgres:// -> postgresql+psycopg://)."""
        if isinstance(v, str) and v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+psycopg://", 1)
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @field_validator("supabase_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("admin_secret_key", mode="before")
    @classmethod
    def blank_secret_is_unset(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v:
            return None
        return v

    @field_validator("uploads_dir", mode="after")
    @classmethod
    def resolve_uploads_dir(cls, v: str) -> str:
        """Resolve uploads_dir to absolute path for consistency across processes."""
        path = Path(v)
        if not path.is_absolute():
            backend_dir = Path(__file__).parent.parent.parent
            path = (backend_dir / v).resolve()
        else:
            path = path.resolve()
        path.mkdir(parents=True, exist_ok=True)
        return str(path)


@lru_cache
def get_settings() -> Settings:
    """Provide singleton-like access for dependency injection."""
    return Settings()
