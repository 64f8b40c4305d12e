from functools import lru_cache
from typing import Literal, Optional
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "GiftRecs"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"

    # Mongo
    MONGO_URI: str = ""
    MONGO_DB: str = "giftrecs"

    # Redis (optional: query-embedding cache second tier)
    REDIS_URL: Optional[str] = None

    # Vector cache config
    vector_cache_ttl: int = 24 * 3600          # 24h
    vector_cache_prefix: str = "qvec"          # redis key namespace
    query_embedding_memo_size: int = 512       # in-process first tier
    query_embedding_memo_ttl: int = 15 * 60

    # OpenAI
    OPENAI_API_KEY: str = ""
    openai_timeout_s: int = 30  # seconds
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    OPENAI_RERANK_MODEL: str = "gpt-4.1-mini"

    # Session profile
    embedding_max_chars: int = 1500

    # Retrieval
    recs_pool_limit: int = 60                  # per pool (vendor / affiliate)

    # Ranking (business tuning values)
    recs_vendor_boost: float = 1.3
    recs_interest_boost: float = 0.2
    recs_max_per_retailer: int = 4
    recs_max_results: int = 60
    recs_similarity_fallback: float = 0.5
    recs_diversify: bool = True

    # LLM rerank
    RECS_LLM_RERANK_ENABLED: bool = False
    recs_rerank_top_n: int = 20
    recs_rerank_temperature: float = 0.2
    recs_rerank_max_tokens: int = 400

    # Pagination
    recs_default_page_size: int = 30
    recs_max_page_size: int = 60

    # Rate limit (token bucket per client)
    rate_limit_capacity: int = 60
    rate_limit_refill_per_s: float = 1.0

    # API
    api_prefix: str = "/api"

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True)

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
