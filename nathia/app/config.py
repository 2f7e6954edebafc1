from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    PROJECT_NAME: str = "NAT-IA"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    DEFAULT_LANGUAGE: str = "pt-BR"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:5000",
        "http://127.0.0.1:5000",
        "http://localhost:5173",
    ]
    # Allow any localhost/127.0.0.1 port (useful for dev tools/proxies)
    CORS_ORIGIN_REGEX: str = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

    # Database
    DATABASE_URL: str = "sqlite:///./nathia.db"

    # Generative provider (Gemini)
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    TEMPERATURE: float = 0.7
    MAX_OUTPUT_TOKENS: int = 500
    AI_TIMEOUT_S: float = 15.0

    # Q&A provider
    QA_API_URL: str = ""
    QA_API_KEY: str = ""
    QA_CACHE_TTL_S: int = 3600

    # Moderation channel (SOS notifications); empty disables the webhook
    MODERATION_WEBHOOK_URL: str = ""

    # Resilience
    RETRY_JITTER: float = 0.2  # +/- fraction applied to live backoff delays
    CIRCUIT_FAILURE_THRESHOLD: int = 5
    CIRCUIT_RESET_TIMEOUT_S: float = 30.0
    CIRCUIT_SUCCESS_THRESHOLD: int = 1

    # Community / input limits
    REPORT_AUTO_HIDE_THRESHOLD: int = 5
    MAX_MESSAGE_LENGTH: int = 5000
    MAX_HISTORY_MESSAGES: int = 100

    # Optional JSON file overriding the default NAT-IA thresholds/keywords
    NATHIA_CONFIG_FILE: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()

    # Only require the provider key in production
    if settings.ENVIRONMENT == "production" and not settings.GEMINI_API_KEY:
        raise ValueError("GEMINI_API_KEY is required in production environment")

    return settings
