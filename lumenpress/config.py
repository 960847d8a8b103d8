"""
Configuration management for the content engine.
Uses Pydantic Settings for environment variable management.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_TITLE: str = "LumenPress API"
    API_VERSION: str = "0.1.0"
    API_DESCRIPTION: str = "Content index and image API for a folder-structured photo blog"
    LOG_LEVEL: str = "INFO"

    # CORS Configuration
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]

    # Storage backend selection: "auto", "local" or "s3"
    # "auto" uses S3 only when bucket and both keys are present
    STORAGE_BACKEND: str = "auto"

    # Local filesystem content root
    CONTENT_ROOT: str = "./content"

    # S3-compatible object store (AWS S3, Cloudflare R2, MinIO)
    S3_BUCKET: str = ""
    S3_PREFIX: str = ""
    S3_ENDPOINT_URL: str = ""
    S3_REGION: str = "auto"
    S3_ACCESS_KEY_ID: str = ""
    S3_SECRET_ACCESS_KEY: str = ""

    # Content index cache
    INDEX_PATH: str = "_content-index.json"
    # How long a rebuild marker suppresses duplicate rebuilds when a stale copy exists
    REBUILD_LEASE_SECONDS: int = 60
    # Admin writes rebuild the index at once instead of only invalidating it
    REBUILD_AFTER_WRITE: bool = False

    # Scanner knobs
    EXCERPT_LENGTH: int = 160
    WORDS_PER_MINUTE: int = 200
    EXTRACT_EXIF: bool = True

    # Image variants
    VARIANT_WIDTHS: List[int] = [400, 800, 1200, 1600]
    GENERATE_VARIANTS: bool = True
    WEBP_QUALITY: int = 85

    # Admin password (bcrypt hash), checked by the CMS route dependency
    ADMIN_PASSWORD_HASH: str = ""

    @property
    def s3_configured(self) -> bool:
        """True when bucket and credentials are all present."""
        return bool(self.S3_BUCKET and self.S3_ACCESS_KEY_ID and self.S3_SECRET_ACCESS_KEY)

    @property
    def s3_endpoint(self) -> Optional[str]:
        return self.S3_ENDPOINT_URL or None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings


# Global settings instance
settings = Settings()
