"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class DatabaseConfig(BaseSettings):
    """Backing table service configuration.

    Without a database URL the in-memory table service is used.
    """

    model_config = {"env_prefix": "RELMAP_DB_"}

    database_url: str | None = None
    echo: bool = False
    pool_size: int = 5


class AuthConfig(BaseSettings):
    """Authentication configuration."""

    model_config = {"env_prefix": "RELMAP_AUTH_"}

    provider: str = "mock"
    fixtures_path: str | None = None
    token_expiry_minutes: int = 60


class SyncConfig(BaseSettings):
    """Remote synchronisation configuration."""

    model_config = {"env_prefix": "RELMAP_SYNC_"}

    max_retries: int = 1
    retry_backoff_seconds: float = 0.5


class ExportConfig(BaseSettings):
    """Spreadsheet export/import configuration."""

    model_config = {"env_prefix": "RELMAP_EXPORT_"}

    persons_sheet: str = "Persons"
    relations_sheet: str = "Relations"
    category_delimiter: str = "|"
    filename: str = "knowledge-map.xlsx"


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "RELMAP_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
