"""Platform configuration."""

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError


class PlatformConfig(BaseSettings):
    """
    Pipeline configuration.

    Uses Pydantic BaseSettings for automatic environment variable loading.
    Environment variables are prefixed with ELEMENTFEED_. Every field has a
    default, so an empty environment runs the pipeline on local heuristics
    only.

    Optional environment variables:
        OPENAI_API_KEY / ELEMENTFEED_OPENAI_API_KEY: Analysis API key
            (unset: classifier and scorer use keyword heuristics and the
            safety screener trusts content)
        ELEMENTFEED_OPENAI_BASE_URL: OpenAI-compatible API base URL
        OPENAI_BUDGET_LIMIT_USD: Spend limit per window (default: 50)
        OPENAI_BUDGET_WINDOW_HOURS: Rolling spend window (default: 24)
        ELEMENTFEED_MAX_CONCURRENT_JOBS: Moderation worker pool size (default: 4)
        ELEMENTFEED_JOB_TIMEOUT: Hard ceiling for one pipeline run (default: 120)
        ELEMENTFEED_TRENDING_INTERVAL: Trending recompute period (default: 3600)
        ELEMENTFEED_LOG_LEVEL: Root log level (default: INFO)
    """

    model_config = SettingsConfigDict(
        env_prefix="ELEMENTFEED_",
        extra="ignore",
    )

    # External analysis API
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "openai_api_key",
            "ELEMENTFEED_OPENAI_API_KEY",
            "OPENAI_API_KEY",
        ),
    )
    openai_base_url: str = "https://api.openai.com/v1"
    video_model: str = "gpt-4o"
    text_model: str = "gpt-4o-mini"
    positivity_model: str = "gpt-4o-mini"

    # Per-request timeout and transient-error retries (seconds)
    request_timeout: float = Field(default=30.0, gt=0)
    request_max_retries: int = Field(default=2, ge=0)
    request_retry_base_delay: float = Field(default=1.0, ge=0)
    request_retry_max_delay: float = Field(default=10.0, ge=0)

    # Spend guard
    budget_limit_usd: float = Field(
        default=50.0,
        ge=0,
        validation_alias=AliasChoices(
            "budget_limit_usd",
            "ELEMENTFEED_BUDGET_LIMIT_USD",
            "OPENAI_BUDGET_LIMIT_USD",
        ),
    )
    budget_window_hours: float = Field(
        default=24.0,
        gt=0,
        validation_alias=AliasChoices(
            "budget_window_hours",
            "ELEMENTFEED_BUDGET_WINDOW_HOURS",
            "OPENAI_BUDGET_WINDOW_HOURS",
        ),
    )
    batch_size: int = Field(default=5, ge=1)
    batch_flush_interval: float = Field(default=10.0, gt=0)

    # Moderation worker pool
    max_concurrent_jobs: int = Field(default=4, ge=1)
    job_timeout: float = Field(default=120.0, gt=0)
    job_max_retries: int = Field(default=3, ge=0)
    job_retry_base_delay: float = Field(default=1.0, ge=0)
    job_retry_max_delay: float = Field(default=10.0, ge=0)
    shutdown_grace_period: float = Field(default=30.0, ge=0)

    # Scheduled jobs (seconds)
    trending_interval: float = Field(default=3600.0, gt=0)
    trending_initial_delay: float = Field(default=5.0, ge=0)
    cache_purge_interval: float = Field(default=60.0, gt=0)

    # Cache lifetimes (seconds)
    feed_cache_ttl: float = Field(default=300.0, gt=0)
    recommendation_ttl: float = Field(default=4 * 60 * 60, gt=0)

    log_level: str = "INFO"

    @property
    def analysis_configured(self) -> bool:
        return bool(self.openai_api_key)

    @classmethod
    def load(cls, **overrides: object) -> "PlatformConfig":
        """
        Build from the environment plus *overrides*.

        Raises:
            ConfigError: If a value fails validation.
        """
        try:
            return cls(**overrides)  # type: ignore[arg-type]
        except ValidationError as e:
            raise ConfigError(f"Invalid platform configuration: {e}") from e
