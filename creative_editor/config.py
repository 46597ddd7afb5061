"""
Configuration management using pydantic-settings.
Loads from environment variables and .env file.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class EditorConfig(BaseSettings):
    """
    Batch editor settings.

    These settings can be overridden with environment variables.
    """
    # API settings
    PROJECT_NAME: str = "Creative Batch Editor API"
    VERSION: str = "0.1.0"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # CORS settings (comma-separated string)
    BACKEND_CORS_ORIGINS: str = "*"

    # Gemini credentials: API key wins, otherwise Vertex AI
    GEMINI_API_KEY: Optional[str] = None
    GCP_PROJECT: str = ""
    GCP_LOCATION: str = "us-central1"

    # Models
    OCR_MODEL: str = "gemini-2.5-flash"
    EDIT_MODEL: str = "gemini-2.5-flash-image"

    # Upper bound for a single remote call; the service itself has no timeout
    REMOTE_TIMEOUT_SECONDS: float = 120.0

    # Batch processing
    BATCH_CONCURRENCY: int = 3
    MASK_FILL_COLOR: str = "#FF00FF"

    # Sessions idle for longer than this are dropped (0 keeps them forever)
    SESSION_TTL_SECONDS: float = 6 * 60 * 60

    # Uploads
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024
    DOWNLOAD_TIMEOUT_SECONDS: float = 30.0

    # Batch completion callback
    CALLBACK_TIMEOUT_SECONDS: float = 30.0

    @field_validator("GCP_PROJECT", mode="before")
    @classmethod
    def validate_gcp_project(cls, v: Optional[str]) -> str:
        return v or ""

    @field_validator("BATCH_CONCURRENCY")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("BATCH_CONCURRENCY must be at least 1")
        return v

    def has_credentials(self) -> bool:
        """Whether either the API key or a Vertex AI project is configured."""
        return bool(self.GEMINI_API_KEY or self.GCP_PROJECT)

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Allow extra fields in .env
    )


class Settings(EditorConfig):
    """
    Combined application settings.
    """
    pass


# Create settings instance
settings = Settings()

if not settings.has_credentials():
    logger.warning("Neither GEMINI_API_KEY nor GCP_PROJECT is set. Remote AI calls will fail.")


def get_settings() -> Settings:
    """Get settings instance."""
    return settings
