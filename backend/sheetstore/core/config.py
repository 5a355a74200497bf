"""Centralized application settings using pydantic settings."""

from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
# Look for .env in the backend directory or project root
env_path = Path(__file__).parent.parent.parent / ".env"
if not env_path.exists():
    env_path = Path(__file__).parent.parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:5173",
]


class Settings(BaseSettings):
    """Environment-aware configuration (Azure endpoints, upload limits, broker settings)."""

    # Application settings
    app_name: str = "SheetStore API"
    log_level: str = "INFO"

    # Azure Blob Storage settings
    azure_storage_connection_string: str | None = Field(
        default=None,
        description="Connection string for the blob account; local storage is used when unset",
    )
    azure_storage_container: str = "excel-uploads"

    # Azure Cosmos DB settings
    azure_cosmosdb_endpoint: str | None = None
    azure_cosmosdb_key: str | None = None
    azure_cosmosdb_database: str = "excel-upload-db"
    azure_cosmosdb_container: str = "excel-records"

    # Upload/ingestion settings
    uploads_dir: str = Field(
        default="storage/uploads",
        description="Directory for staged uploads and local blobs (absolute or relative path)",
    )
    max_upload_size_mb: int = 100
    row_failure_policy: str = Field(
        default="continue",
        description="'continue' records failed row writes and carries on, 'abort' stops the import",
    )

    # Redis settings
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # Celery settings
    celery_broker_url: str | None = None
    celery_result_url: str | None = None

    # CORS settings - stored as string, converted to list via property
    cors_origins_raw: str | None = Field(
        default=None,
        alias="CORS_ORIGINS",
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
    def cors_origins(self) -> List[str]:
        """Parse CORS_ORIGINS from comma-separated string to list."""
        if self.cors_origins_raw is None or not self.cors_origins_raw.strip():
            return list(DEFAULT_CORS_ORIGINS)
        origins = [
            origin.strip().rstrip("/")
            for origin in self.cors_origins_raw.split(",")
            if origin.strip()
        ]
        return origins if origins else list(DEFAULT_CORS_ORIGINS)

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def cosmos_configured(self) -> bool:
        return bool(self.azure_cosmosdb_endpoint and self.azure_cosmosdb_key)

    @field_validator("row_failure_policy", mode="before")
    @classmethod
    def normalize_row_failure_policy(cls, v: str | None) -> str:
        """Accept any casing; reject unknown policies early."""
        value = (v or "continue").strip().lower()
        if value not in ("continue", "abort"):
            raise ValueError("row_failure_policy must be 'continue' or 'abort'")
        return value

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
