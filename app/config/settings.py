from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    ai_service_url: str = "http://localhost:8082"
    metadata_service_url: str = "http://localhost:8085"
    http_timeout_seconds: float = Field(default=10.0, gt=0)

    enrichment_provider: str = "ai_service"
    enrichment_openai_api_key: str = ""
    enrichment_openai_model_name: str = ""
    enrichment_openai_timeout_seconds: int = Field(default=30, gt=0)
    enrichment_openai_base_url: str | None = None

    breaker_failure_rate_threshold: float = Field(default=50.0, gt=0, le=100)
    breaker_window_size: int = Field(default=10, ge=1)
    breaker_minimum_calls: int = Field(default=5, ge=1)
    breaker_open_duration_seconds: float = Field(default=30.0, ge=0)
    breaker_half_open_max_calls: int = Field(default=3, ge=1)

    worker_concurrency: int = Field(default=4, ge=1)
    processing_version: str = "1.0"

    @model_validator(mode="after")
    def _fit_minimum_calls_to_window(self) -> "Settings":
        # A window smaller than the default minimum shrinks the minimum with it;
        # an explicit minimum larger than the window is a configuration error.
        if self.breaker_minimum_calls <= self.breaker_window_size:
            return self
        if "breaker_minimum_calls" in self.model_fields_set:
            raise ValueError(
                f"breaker_minimum_calls ({self.breaker_minimum_calls}) must not exceed "
                f"breaker_window_size ({self.breaker_window_size})"
            )
        self.breaker_minimum_calls = self.breaker_window_size
        return self
