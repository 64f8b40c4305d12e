# giftrecs/db/redis.py
import logging

import redis.asyncio as redis

from giftrecs.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

redis_client: redis.Redis | None = None


async def connect(settings: Settings | None = None) -> None:
    """
    Optional second tier of the query-embedding cache.
    The client is kept only when it answers a ping; otherwise embeddings are
    cached per process and the request path never notices.
    """
    global redis_client
    settings = settings or get_settings()
    redis_client = None
    if not settings.REDIS_URL:
        logger.info("REDIS_URL not set, shared embedding cache disabled")
        return

    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await client.ping()
    except Exception as e:
        logger.warning(f"Redis unreachable, shared embedding cache disabled: {e}")
        await client.aclose()
        return
    redis_client = client
    logger.info("Redis connected")


async def disconnect() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        logger.info("Redis disconnected")
    redis_client = None


def get_redis() -> redis.Redis | None:
    return redis_client
