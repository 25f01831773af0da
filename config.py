"""
Application configuration using Pydantic Settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Viewer / API addressing
    API_BASE_URL: str = ""  # empty or localhost -> same-origin relative paths
    APP_ORIGIN: str = "http://localhost:5173"

    # Device breakpoints (exclusive upper bounds, px)
    MOBILE_BREAKPOINT: int = 768
    TABLET_BREAKPOINT: int = 1024

    # Playback
    STREAM_URL_POLICY: str = "original"  # original | transformed
    DURATION_SYNC_THRESHOLD_SECONDS: int = 2

    # Uploads
    MAX_UPLOAD_MB: int = 200
    DEFAULT_UPLOADER: str = "User"

    # Reference backend
    DATABASE_URL: str = "sqlite+aiosqlite:///./streamflex.db"
    AUTO_CREATE_DB_SCHEMA: bool = True
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 5000
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    MAX_SERVER_UPLOAD_BYTES: int = 2 * 1024 * 1024 * 1024  # 2 GB

    # Asset storage
    ASSET_STORAGE_BACKEND: str = "local"  # local | memory
    ASSET_STORAGE_DIR: str = "/tmp/streamflex_assets"
    ASSET_PUBLIC_BASE_URL: str = "http://localhost:5000/assets"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()

SUPPORTED_STORAGE_BACKENDS = ("local", "memory")
SUPPORTED_STREAM_POLICIES = ("original", "transformed")


def max_upload_bytes() -> int:
    """Client-side upload ceiling in bytes."""
    return int(settings.MAX_UPLOAD_MB) * 1024 * 1024


def validate_storage_settings() -> None:
    """Fail fast when the asset storage backend is not one we can build."""
    backend = (settings.ASSET_STORAGE_BACKEND or "").strip().lower()
    if backend not in SUPPORTED_STORAGE_BACKENDS:
        raise ValueError(
            f"ASSET_STORAGE_BACKEND={settings.ASSET_STORAGE_BACKEND!r} is not supported. "
            f"Use one of: {', '.join(SUPPORTED_STORAGE_BACKENDS)}."
        )
    if backend == "local" and not (settings.ASSET_STORAGE_DIR or "").strip():
        raise ValueError("ASSET_STORAGE_DIR must be set when using the local asset storage backend.")
