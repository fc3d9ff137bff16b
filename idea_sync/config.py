"""Application configuration using Pydantic Settings."""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Local database (embedded SQLite)
    database_url: str = "sqlite+aiosqlite:///./idea_sync.db"

    # Google Drive snapshot location
    drive_api_url: str = "https://www.googleapis.com/drive/v3"
    drive_upload_url: str = "https://www.googleapis.com/upload/drive/v3"
    drive_folder: str = "appDataFolder"  # Hidden app-private folder
    backup_filename: str = "idea-assistance-backup.json"
    snapshot_version: str = "1.0.0"

    # Sync behaviour
    transport_timeout_seconds: float = 30.0
    sync_timeout_seconds: float = 120.0
    sync_conflict_retries: int = 1  # Extra download/merge rounds when the remote file moved
    tombstone_retention_days: int = 30

    # Google OAuth (used to refresh an expired access token)
    google_client_id: str = ""
    google_client_secret: str = ""
    google_token_uri: str = "https://oauth2.googleapis.com/token"

    # Encryption (for stored OAuth tokens)
    encryption_key: str = ""  # Fernet key

    # Supabase (sync usage metadata)
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_user_id: str = ""

    # App Settings
    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
