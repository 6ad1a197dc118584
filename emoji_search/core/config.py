"""
Application configuration
"""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Emoji Search API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"  # DEBUG forces DEBUG regardless

    # Redis
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_CACHE_DB: int = 2

    # Cache
    CACHE_BACKEND: str = "redis"  # "redis" or "memory"
    CACHE_MEMORY_MAX_SIZE: int = 10000  # Max entries for the in-memory backend
    CACHE_TIMEOUT_SEC: float = 2.0
    # Match cache: vector index snapshot is stable, so no expiry by default
    MATCH_CACHE_TTL_SECONDS: Optional[int] = None
    # Search cache: reranks are refreshed weekly
    SEARCH_CACHE_TTL_SECONDS: int = 60 * 60 * 24 * 7
    MIN_EMOJIS_TO_CACHE: int = 10

    # Qdrant
    QDRANT_URL: str = "http://qdrant:6333"
    QDRANT_API_KEY: Optional[str] = None
    QDRANT_COLLECTION: str = "emojis"
    VECTOR_QUERY_TIMEOUT_SEC: float = 5.0
    MATCH_TOP_K: int = 100

    # OpenAI-compatible gateway (embeddings + rerank)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = "https://ai-gateway.vercel.sh/v1"
    EMBEDDING_MODEL: str = "openai/text-embedding-3-small"
    EMBEDDING_TIMEOUT_SEC: float = 5.0

    # Rerank
    RERANK_MODEL: str = "openai/gpt-oss-120b"
    RERANK_TIMEOUT_SEC: float = 10.0
    RERANK_TEMPERATURE: float = 0.1
    RERANK_REASONING_EFFORT: Optional[str] = "low"  # Unset for models without reasoning
    RERANK_PROVIDER_ORDER: List[str] = ["cerebras"]  # Gateway provider preference

    # Rate limiting (slowapi / limits notation)
    RATE_LIMIT: str = "30/minute"
    RATE_LIMIT_STORAGE_URI: str = "async+memory://"
    TRUSTED_IP_HEADER: str = "cf-connecting-ip"

    # Static vocabulary (emojilib-format JSON); derived from the emoji package when unset
    EMOJI_KEYWORDS_PATH: Optional[str] = None

    # CORS (comma-separated list of allowed origins)
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


# Global settings instance
settings = Settings()
