"""Application configuration loaded from environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Centralised settings — no hardcoded values anywhere else."""

    # Database
    database_url: str = Field(
        "sqlite+aiosqlite:///./dinescope.db", env="DATABASE_URL"
    )

    # Google AI
    google_api_key: str = Field("", env="GOOGLE_API_KEY")
    llm_model: str = Field("gemini-2.5-flash", env="LLM_MODEL")
    llm_fallback_model: str = Field("gemma-3-12b-it", env="LLM_FALLBACK_MODEL")

    # Providers: rule_based runs offline
    extraction_provider: Literal["llm", "rule_based"] = Field(
        "llm", env="EXTRACTION_PROVIDER"
    )
    query_parser_provider: Literal["llm", "rule_based"] = Field(
        "llm", env="QUERY_PARSER_PROVIDER"
    )

    # Feature extraction
    feature_extraction_concurrency: int = Field(
        3, env="FEATURE_EXTRACTION_CONCURRENCY"
    )
    feature_extractor_batch_size: int = Field(25, env="FEATURE_EXTRACTOR_BATCH_SIZE")

    # Workers / queue
    worker_poll_interval_seconds: float = Field(5.0, env="WORKER_POLL_INTERVAL_SECONDS")
    worker_error_backoff_seconds: float = Field(10.0, env="WORKER_ERROR_BACKOFF_SECONDS")
    task_retry_delay_seconds: int = Field(60, env="TASK_RETRY_DELAY_SECONDS")
    task_max_attempts: int = Field(3, env="TASK_MAX_ATTEMPTS")

    # Search
    query_cache_ttl_seconds: int = Field(3600, env="QUERY_CACHE_TTL_SECONDS")

    # App
    allowed_origins: str = Field("http://localhost:3000", env="ALLOWED_ORIGINS")
    app_env: str = Field("development", env="APP_ENV")
    log_level: str = Field("INFO", env="LOG_LEVEL")

    # Derived
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list."""
        return [o.strip() for o in self.allowed_origins.split(",")]

    @property
    def extraction_concurrency(self) -> int:
        """FEATURE_EXTRACTION_CONCURRENCY clamped to 1..6."""
        return max(1, min(6, self.feature_extraction_concurrency))

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()


settings = get_settings()
