from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Quiz Answer Evaluation Cache"
    LOG_LEVEL: str = "INFO"

    # Cache store
    CACHE_BACKEND: Literal["redis", "memory"] = "redis"
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_CONFIG_PATH: Optional[str] = None

    # Embeddings
    OPENAI_API_KEY: Optional[str] = None
    EMBEDDING_SOURCE: Literal["openai", "ollama"] = "openai"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    OLLAMA_SERVER_URL: str = "http://localhost:11434"

    # Evaluator
    EVALUATOR_MODEL: str = "gpt-4o-mini"
    EVALUATOR_BASE_URL: Optional[str] = None
    LLM_TIMEOUT_SECONDS: float = 20.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


settings = Settings()
