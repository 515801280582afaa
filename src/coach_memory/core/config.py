"""Configuration management."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetrievalConfig(BaseModel):
    """Tunables for admission and relevance retrieval."""

    memory_quota: int = Field(default=150, ge=1, description="Maximum active memories per owner")
    similarity_threshold: float = Field(
        default=0.75,
        ge=0.0,
        le=1.0,
        description="Minimum score on the (1 + cosine) / 2 scale; 0.75 means cosine >= 0.5",
    )
    default_limit: int = Field(default=5, ge=1, description="Relevant memories returned when no limit is given")
    keyword_min_length: int = Field(default=3, ge=0, description="Keywords must be strictly longer than this")
    keyword_max_count: int = Field(default=5, ge=1, description="Maximum keywords used for the fallback search")
    provider_timeout_seconds: float = Field(default=10.0, gt=0)


class SummaryMaintenanceConfig(BaseModel):
    """Tunables for the summary maintenance passes."""

    batch_size: int = Field(default=5, ge=1, description="Concurrent summarization calls per batch")
    batch_delay_seconds: float = Field(default=1.0, ge=0.0, description="Pause between batches")
    summarize_archived: bool = Field(default=False, description="Also fill summaries of archived memories")
    provider_timeout_seconds: float = Field(default=30.0, gt=0)
    embedding_timeout_seconds: float = Field(default=10.0, gt=0)


class Settings(BaseSettings):
    # API Keys
    voyage_api_key: str = ""
    openai_api_key: str = ""

    # Neo4j
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "password"
    neo4j_database: str | None = None

    # Providers
    voyage_model: str = "voyage-3"
    summary_model: str = "gpt-3.5-turbo"
    openai_base_url: str | None = None
    summary_max_tokens: int = 100
    summary_temperature: float = 0.7

    # Memory policy
    memory_quota: int = Field(default=150, description="Maximum non-archived memories per owner")
    similarity_threshold: float = 0.75
    relevance_default_limit: int = 5
    keyword_min_length: int = 3
    keyword_max_count: int = 5
    provider_timeout_seconds: float = 10.0

    # Summary maintenance
    summary_batch_size: int = 5
    summary_batch_delay_seconds: float = 1.0
    summarize_archived: bool = False
    summary_timeout_seconds: float = 30.0
    maintenance_interval_minutes: int = 60

    # App config
    debug: bool = False
    log_json: bool = False
    service_name: str = "coach-memory"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # Ignore extra fields in .env file
        env_nested_delimiter="__",
    )

    @property
    def retrieval(self) -> RetrievalConfig:
        """Get retrieval configuration."""
        return RetrievalConfig(
            memory_quota=self.memory_quota,
            similarity_threshold=self.similarity_threshold,
            default_limit=self.relevance_default_limit,
            keyword_min_length=self.keyword_min_length,
            keyword_max_count=self.keyword_max_count,
            provider_timeout_seconds=self.provider_timeout_seconds,
        )

    @property
    def summary_maintenance(self) -> SummaryMaintenanceConfig:
        """Get summary maintenance configuration."""
        return SummaryMaintenanceConfig(
            batch_size=self.summary_batch_size,
            batch_delay_seconds=self.summary_batch_delay_seconds,
            summarize_archived=self.summarize_archived,
            provider_timeout_seconds=self.summary_timeout_seconds,
            embedding_timeout_seconds=self.provider_timeout_seconds,
        )


settings = Settings()
