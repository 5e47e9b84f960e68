from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-3-flash-preview"
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    AI_TIMEOUT_SECONDS: float = 60.0
    AI_SAMPLE_SIZE: int = 50

    HISTORY_BACKEND: str = "memory"  # memory | redis
    REDIS_URL: Optional[str] = None
    HISTORY_KEY: str = "cleanse_ai_history"
    HISTORY_LIMIT: int = 50

    MAX_UPLOAD_MB: int = 50
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
