# giftrecs/core/lifespan.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from giftrecs.db import mongo, redis as r
from giftrecs.core.config import get_settings
from giftrecs.domain.services.llm_providers import OpenAIChatProvider, OpenAIEmbeddingProvider
from giftrecs.utils.cache import TTLCache
from giftrecs.utils.rate_limit import TokenBucketLimiter
from giftrecs.utils.tasks import BackgroundRunner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    # Mongo client is lazy: a failed startup ping is retried by the first query
    if settings.MONGO_URI:
        await mongo.connect(settings)
    else:
        logger.warning("No MONGO_URI provided, skipping Mongo connection")

    # Redis is optional (shared query-embedding cache only)
    await r.connect(settings)

    # Process-level collaborators, injected through app.state
    app.state.runner = BackgroundRunner()
    app.state.embedding_memo = TTLCache(
        max_size=settings.query_embedding_memo_size,
        ttl=settings.query_embedding_memo_ttl,
    )
    app.state.rate_limiter = TokenBucketLimiter(
        capacity=settings.rate_limit_capacity,
        refill_per_s=settings.rate_limit_refill_per_s,
    )
    app.state.embedder = OpenAIEmbeddingProvider(settings)
    app.state.chat = OpenAIChatProvider(settings)

    yield

    # --- Shutdown ---
    await app.state.runner.drain(timeout=5)

    try:
        if settings.REDIS_URL:
            await r.disconnect()
    except Exception as e:
        logger.warning(f"Redis disconnect failed: {e}")

    try:
        if settings.MONGO_URI:
            await mongo.disconnect()
            logger.info("Mongo disconnected")
    except Exception as e:
        logger.warning(f"Mongo disconnect failed: {e}")
