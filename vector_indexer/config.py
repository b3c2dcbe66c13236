"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables (or a `.env` file).
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from vector_indexer.exceptions import ConfigurationError


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EmbeddingSettings(BaseSettings):
    """Embedding engine configuration.

    The ``http`` provider talks to an OpenAI-compatible or
    text-embeddings-inference server; ``local`` loads a
    sentence-transformers model in-process.
    """

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    provider: Literal["http", "local"] = Field(
        default="http",
        description="Embedding backend (http or local)",
    )
    base_url: str = Field(
        default="http://localhost:8080",
        description="Embedding service base URL (http provider)",
    )
    model: str = Field(
        default="BAAI/bge-small-en-v1.5",
        description="Embedding model name",
    )
    batch_size: int = Field(
        default=1000,
        gt=0,
        description="Documents embedded per batch before each store write",
    )
    timeout: float = Field(
        default=60.0,
        description="Request timeout in seconds (http provider)",
    )


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str | None = Field(
        default=None,
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key",
    )
    collection_name: str | None = Field(
        default=None,
        description="Collection (index) name",
    )
    namespace: str | None = Field(
        default=None,
        description="Default namespace within the collection",
    )
    upsert_batch_size: int = Field(
        default=100,
        gt=0,
        description="Maximum points per upsert request",
    )
    ready_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Seconds to wait for a new collection to become ready",
    )
    ready_poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between readiness checks",
    )

    def missing_required(self) -> list[str]:
        """Return the environment variables required to reach the store that are unset."""
        missing = []
        if not self.api_key or not self.api_key.get_secret_value():
            missing.append("QDRANT_API_KEY")
        if not self.url:
            missing.append("QDRANT_URL")
        if not self.collection_name:
            missing.append("QDRANT_COLLECTION_NAME")
        return missing


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)

    def require_store_config(self) -> str:
        """Fail fast when the vector store cannot be reached.

        Returns:
            The configured collection name.

        Raises:
            ConfigurationError: If any required store variable is missing.
        """
        missing = self.qdrant.missing_required()
        if missing or self.qdrant.collection_name is None:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                details={"missing": missing},
            )
        return self.qdrant.collection_name


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
