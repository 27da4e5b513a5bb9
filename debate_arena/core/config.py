# debate_arena/core/config.py
from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings, loaded from environment variables and/or .env file.
    """

    # Environment settings
    APP_NAME: str = "Debate Arena"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    ENABLE_DEBUG_ENDPOINTS: bool = False

    # Observability settings
    SENTRY_DSN: Optional[str] = None

    # Groq completion API
    GROQ_API_KEY: str = Field(default="", repr=False)
    GROQ_API_URL: str = "https://api.groq.com/openai/v1/chat/completions"
    GROQ_MODEL: str = "llama-3.1-8b-instant"
    GROQ_TIMEOUT_SECONDS: float = 30.0
    GROQ_MAX_TOKENS: int = 220
    GROQ_TEMPERATURE: float = 0.7

    # Retry policy used for completion calls (conservative, calls are slow)
    GROQ_RETRY_MAX_RETRIES: int = 2
    GROQ_RETRY_INITIAL_DELAY_SECONDS: float = 2.0
    GROQ_RETRY_MAX_DELAY_SECONDS: float = 8.0

    # Resilience defaults
    RETRY_MAX_RETRIES: int = 3
    RETRY_INITIAL_DELAY_SECONDS: float = 1.0
    RETRY_MAX_DELAY_SECONDS: float = 10.0
    RETRY_BACKOFF_FACTOR: float = 2.0

    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = 5
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SECONDS: float = 60.0

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")

    @model_validator(mode="after")
    def _check_retry_delays(self) -> "Settings":
        """Backoff bounds must be ordered for both retry policies."""
        if self.RETRY_INITIAL_DELAY_SECONDS > self.RETRY_MAX_DELAY_SECONDS:
            raise ValueError(
                "RETRY_INITIAL_DELAY_SECONDS must not exceed RETRY_MAX_DELAY_SECONDS"
            )
        if self.GROQ_RETRY_INITIAL_DELAY_SECONDS > self.GROQ_RETRY_MAX_DELAY_SECONDS:
            raise ValueError(
                "GROQ_RETRY_INITIAL_DELAY_SECONDS must not exceed "
                "GROQ_RETRY_MAX_DELAY_SECONDS"
            )
        return self

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


settings = Settings()
