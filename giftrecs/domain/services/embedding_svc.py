# giftrecs/domain/services/embedding_svc.py

from __future__ import annotations
from typing import List, Optional
import logging

from giftrecs.domain.repositories.vector_cache_repo import VectorCacheRepo
from giftrecs.domain.services.llm_providers import EmbeddingProvider
from giftrecs.utils.cache import TTLCache

logger = logging.getLogger(__name__)


def truncate_preference_text(text: str, max_chars: int) -> str:
    """Collapse whitespace and bound the text sent to the embedding provider."""
    return " ".join((text or "").split())[:max_chars]


async def get_or_create_query_embedding(
    text: str,
    embedder: EmbeddingProvider,
    *,
    model: str,
    memo: Optional[TTLCache] = None,
    vector_cache: Optional[VectorCacheRepo] = None,
    vector_cache_ttl: int = 24 * 3600,
) -> List[float]:
    """
    Embedding for a free-text preference, with:
      1) in-process memo (TTLCache)
      2) Redis cache shared across workers (optional)
      3) provider call, written back to both tiers

    Cache read/write errors are logged and skipped; provider errors propagate
    so the caller decides how to degrade.
    """
    if not text:
        return []

    memo_key = (model, text)

    # 1) in-process memo
    if memo is not None and (vec := memo.get(memo_key)):
        logger.debug("Query embedding memo hit")
        return vec

    # 2) Redis
    redis_key = vector_cache.key(text, model) if vector_cache is not None else None
    if vector_cache is not None:
        try:
            if vec := await vector_cache.get(redis_key):
                logger.info(f"Query embedding Redis hit key={redis_key}")
                if memo is not None:
                    memo.set(memo_key, vec)
                return vec
        except Exception as e:
            logger.warning(f"Redis read failed for key={redis_key}: {e}")

    # 3) provider
    logger.info(f"Requesting query embedding model={model} chars={len(text)}")
    vec = await embedder.embed(text)

    if memo is not None:
        memo.set(memo_key, vec)
    if vector_cache is not None:
        try:
            await vector_cache.set(redis_key, vec, ttl=vector_cache_ttl)
        except Exception as e:
            logger.warning(f"Redis write failed for key={redis_key}: {e}")
    return vec
