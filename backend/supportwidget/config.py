"""Application configuration."""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://widget:widget123@db:5432/supportwidget"
    AUTO_CREATE_TABLES: bool = True
    STORAGE_TIMEOUT_SECONDS: float = 5.0

    # Security (admin endpoints only, visitor endpoints are public)
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    CORS_ORIGINS: List[str] = ["*"]

    # Visitor sessions
    SESSION_DURATION_MINUTES: int = 120
    SESSION_MAX_DURATION_MINUTES: int = 1440
    SESSION_SWEEP_INTERVAL_MINUTES: int = 15  # 0 disables the periodic sweep

    # Knowledge search
    SEARCH_DEFAULT_LIMIT: int = 5
    SEARCH_MAX_LIMIT: int = 20

    # Unanswered query deduplication
    UNANSWERED_DEDUP_WINDOW: int = 50
    UNANSWERED_SIMILARITY_THRESHOLD: float = 0.8

    # External answer generator (OpenAI compatible chat completions)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_API_URL: str = "https://api.openai.com/v1/chat/completions"
    OPENAI_MODEL: str = "gpt-4o-mini"
    GENERATOR_TIMEOUT_SECONDS: float = 15.0
    GENERATOR_MAX_TOKENS: int = 300

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
