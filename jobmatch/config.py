"""
Application settings loaded from environment variables
"""
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the JobMatch service"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "JobMatch ATS Analyzer"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    # Persistence
    PERSISTENCE_BACKEND: str = "memory"
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_TIMEOUT: float = 10.0

    # Remote scoring service (empty URL disables the remote fallback)
    SCORING_SERVICE_URL: str = ""
    SCORING_SERVICE_API_KEY: str = ""
    SCORING_SERVICE_TIMEOUT: float = 30.0
    SCORING_MAX_RETRIES: int = 2
    SCORING_RETRY_BASE_DELAY: float = 1.0

    # Matching
    MATCH_MODE: Literal["substring", "token"] = "substring"
    VOCABULARY_PATH: str = ""

    # Rate limiting
    RATE_LIMIT_REQUESTS: int = 30
    RATE_LIMIT_WINDOW: int = 3600


settings = Settings()
