"""Configuration management for the Family Reunion Registry."""
import os
from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # Local Storage
    data_dir: str = Field(default="data")
    members_file: Optional[str] = None
    gallery_file: Optional[str] = None
    uploads_dir: Optional[str] = None
    gallery_dir: Optional[str] = None
    local_logs: Optional[str] = None
    log_level: str = "INFO"

    # Web App
    host: str = "0.0.0.0"
    port: int = 3001
    environment: str = "development"
    client_origin: Optional[str] = None
    rate_limit_per_min: int = 120

    # Admin
    admin_password: Optional[str] = None

    # Uploads
    profile_photo_max_mb: int = 5
    gallery_photo_max_mb: int = 10
    gallery_max_files: int = 10
    profile_photo_max_dimension: int = 800
    gallery_photo_max_dimension: int = 1200

    # Google Sheets
    enable_google_sheets: bool = False
    # JSON content of the service account (cloud deploys)
    google_sheets_credentials: Optional[str] = None
    # Path to service account JSON file (local)
    google_service_account_json_path: Optional[str] = None
    google_sheet_id: Optional[str] = None
    google_sheet_name: str = "Sheet1"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Auto-populate derived paths if not set
        if not self.members_file:
            self.members_file = os.path.join(self.data_dir, "family.json")
        if not self.gallery_file:
            self.gallery_file = os.path.join(self.data_dir, "gallery.json")
        if not self.uploads_dir:
            self.uploads_dir = os.path.join(self.data_dir, "uploads")
        if not self.gallery_dir:
            self.gallery_dir = os.path.join(self.data_dir, "gallery")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def admin_protected(self) -> bool:
        return bool(self.admin_password)

    @property
    def sheets_configured(self) -> bool:
        """Sheets sync needs the flag, credentials and a target sheet."""
        has_credentials = bool(self.google_sheets_credentials or self.google_service_account_json_path)
        return self.enable_google_sheets and has_credentials and bool(self.google_sheet_id)

    def ensure_local_dirs(self):
        """Create necessary local directories."""
        dirs = [
            self.data_dir,
            os.path.dirname(self.members_file),
            os.path.dirname(self.gallery_file),
            self.uploads_dir,
            self.gallery_dir,
        ]
        if self.local_logs:
            dirs.append(self.local_logs)
        for dir_path in dirs:
            if dir_path:
                Path(dir_path).mkdir(parents=True, exist_ok=True)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
