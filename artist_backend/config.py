"""
Configuration and settings for the artist management backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_prefix="ARTISTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_prefix: str = Field(default="/api")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Firebase project (Firestore + Auth)
    firebase_credentials: Optional[str] = Field(default=None)
    firebase_project_id: Optional[str] = Field(default=None)

    # Blob storage. "firebase" uses the Cloud Storage bucket of the Firebase
    # project; "cos" uses an S3-compatible bucket.
    storage_backend: Literal["firebase", "cos"] = Field(default="firebase")
    storage_bucket: Optional[str] = Field(default=None)
    storage_public_host: str = Field(default="storage.googleapis.com")
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Request limits
    max_image_bytes: int = Field(default=5 * 1024 * 1024)
    default_page_size: int = Field(default=20)

    # Login only resolves the identity unless this is switched on.
    verify_login_password: bool = Field(default=False)
    firebase_web_api_key: Optional[str] = Field(default=None)

    # Server-sent event stream
    stream_keepalive_seconds: float = Field(default=15.0)
    stream_queue_size: int = Field(default=100)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
