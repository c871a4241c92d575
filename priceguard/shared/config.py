"""Shared configuration management for the auditor.

Based on Pydantic Settings v2:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_PERSISTENCE_BACKEND=minio
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="price-variance-auditor",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Variance detection
    variance_tolerance: float = Field(
        default=0.01,
        ge=0,
        description="Absolute unit price change ignored when classifying documents",
    )

    # Extraction provider configuration
    extraction_provider: Literal["openai", "ollama"] = Field(
        default="openai",
        description="Extraction provider: openai (cloud API), ollama (self-hosted vision LLM)",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model used for document extraction",
    )
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server base URL",
    )
    ollama_model: str = Field(
        default="llama3.2-vision:11b",
        description="Ollama vision model to use for extraction",
    )
    extraction_workers: int = Field(
        default=1,
        ge=1,
        le=16,
        description=(
            "Concurrent extraction calls per batch. Results are always applied "
            "to the ledger one at a time, in upload order."
        ),
    )
    max_upload_size_bytes: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Maximum accepted size of a single uploaded document",
    )

    # Persistence configuration
    persistence_backend: Literal["file", "minio"] = Field(
        default="file",
        description="Where ledger snapshots are kept: file (local JSON), minio (S3-compatible)",
    )
    snapshot_path: str = Field(
        default="data/ledger.json",
        description="Path of the JSON snapshot for the file backend",
    )

    # Storage configuration (S3-compatible object storage)
    storage_endpoint: str = Field(
        default="localhost:9000",
        description="S3-compatible storage endpoint (host:port)",
    )
    storage_access_key: str = Field(
        default="",
        description="Storage access key (use env var APP_STORAGE_ACCESS_KEY)",
    )
    storage_secret_key: str = Field(
        default="",
        description="Storage secret key (use env var APP_STORAGE_SECRET_KEY)",
    )
    storage_bucket: str = Field(
        default="price-auditor",
        description="Bucket holding the ledger snapshot",
    )
    storage_secure: bool = Field(
        default=False,
        description="Use HTTPS for storage connections",
    )
    storage_snapshot_object: str = Field(
        default="ledger/snapshot.json",
        description="Object name of the ledger snapshot inside the bucket",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
