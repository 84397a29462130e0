"""Pipeline configuration settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the candidate evaluation pipeline."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Pipeline
    VERIFICATION_ENABLED: bool = False
    FRAUD_WARNING_THRESHOLD: int = 75  # Fraud score above this audits as WARNING
    SUSPICION_PAYLOAD_BYTES: int = 4000  # Profile JSON budget sent to the AI auditor
    FANOUT_WORKERS: int = 3

    # Re-ranking
    RERANK_RETRY_DELAY: float = 1.5  # Seconds before the single lookup retry

    # Auto-email decisions
    SHORTLIST_THRESHOLD: int = 75
    REJECT_THRESHOLD: int = 60

    # LLM
    LLM_PROVIDER: str = "auto"  # auto | gemini | mistral
    LLM_TEMPERATURE: float = 0.0
    GEMINI_API_KEY: Optional[str] = None
    GOOGLE_API_KEY: Optional[str] = None  # Used when GEMINI_API_KEY is unset
    GEMINI_MODEL: str = "gemini-2.0-flash"
    MISTRAL_API_KEY: Optional[str] = None
    MISTRAL_MODEL: str = "mistral-large-latest"

    # Logging
    LOG_LEVEL: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
