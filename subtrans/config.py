"""Application configuration."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Subtitle Translator"
    debug: bool = False
    log_level: str = "INFO"

    # Local state (token reservoir, batch progress, preferences)
    state_file: Path = Path("data/state.json")

    # LLM provider
    gemini_api_key: Optional[str] = None
    llm_base_url: Optional[str] = None
    fast_model: str = "gemini/gemini-3-flash-preview"
    pro_model: str = "gemini/gemini-3.1-pro-preview"
    temperature: float = 0.3
    max_output_tokens: int = 8192

    # Daily token budget
    token_capacity: int = 500_000

    # Circuit breaker
    circuit_failure_threshold: int = 5
    circuit_cooldown_seconds: float = 60.0

    # Retry policy
    max_retries: int = 3
    retry_base_delay: float = 1.0  # seconds, doubled per transient failure
    retry_jitter: float = 0.2  # seconds
    rate_limit_wait: float = 30.0  # upstream quotas reset per minute

    # Batch translation
    batch_chunk_size: int = 30
    batch_min_chunk_size: int = 2
    batch_chunk_shrink_step: int = 2
    batch_inter_chunk_delay: float = 6.0  # Delay between chunks (seconds)
    batch_max_chunk_attempts: int = 5

    # Health
    degraded_latency_ms: int = 2000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
