"""Environment-based configuration loader using pydantic BaseSettings."""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Store, embeddings and search tuning configuration is loaded from
    environment variables (or a .env file) and validated at startup.
    """

    # Azure Cosmos DB (read-only document store, one container per source)
    cosmos_endpoint: str
    cosmos_database: str = "digital-workplace"
    cosmos_key: str = ""  # empty: use DefaultAzureCredential
    articles_container: str = "articles"
    knowledge_items_container: str = "knowledge_items"
    news_container: str = "news_posts"
    employees_container: str = "employees"
    connectors_container: str = "connectors"
    connector_items_container: str = "connector_items"

    # Embeddings: Azure OpenAI when an endpoint is set, OpenAI otherwise
    azure_openai_endpoint: str = ""
    azure_openai_api_key: str = ""
    azure_openai_api_version: str = "2024-06-01"
    openai_api_key: str = ""
    embedding_model: str = "text-embedding-3-small"

    # Search tuning
    source_fetch_cap: int = 50
    semantic_scan_limit: int = 500
    semantic_min_similarity: float = 0.3
    default_limit: int = 20
    max_limit: int = 100
    default_min_score: float = 0.1
    max_boost: float = 0.05

    # Time budgets (seconds)
    source_timeout_seconds: float = 5.0
    connector_timeout_seconds: float = 8.0
    request_timeout_seconds: float = 10.0

    # Query connector APIs directly in addition to synced connector items
    connector_live_search: bool = False

    # Application
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_time_budgets(self) -> Settings:
        for name in ("source_timeout_seconds", "connector_timeout_seconds"):
            if getattr(self, name) > self.request_timeout_seconds:
                raise ValueError(f"{name} must not exceed request_timeout_seconds")
        return self


def get_settings() -> Settings:
    """Create and return a validated Settings instance."""
    return Settings()  # type: ignore[call-arg]
