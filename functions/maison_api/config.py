"""
Configuration and settings for the project-planning service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # S3-compatible storage
    s3_endpoint: Optional[str] = Field(default=None, env="S3_ENDPOINT")
    s3_region: Optional[str] = Field(default=None, env="S3_REGION")
    s3_bucket: Optional[str] = Field(default=None, env="S3_BUCKET")
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )

    # LLM / Gemini
    gemini_api_key: Optional[str] = Field(default=None, env="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash", env="GEMINI_MODEL")

    # Auth: HS256 tokens issued by the identity provider
    jwt_secret: str = Field(default="dev-secret", env="JWT_SECRET")
    jwt_audience: str = Field(default="authenticated", env="JWT_AUDIENCE")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="MAISON_USE_IN_MEMORY_BACKENDS"
    )

    # Queue (Redis)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    redis_queue_prefix: str = Field(default="maison:jobs", env="REDIS_QUEUE_PREFIX")

    # Uploads
    max_image_bytes: int = Field(default=2_500_000, env="MAX_IMAGE_BYTES")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
