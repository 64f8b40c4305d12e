# giftrecs/domain/repositories/vector_cache_repo.py
from __future__ import annotations
from typing import Optional, Sequence
from redis.asyncio import Redis
import json, hashlib

def _stable_hash(s: str, n: int = 8) -> str:
    """Short, stable hash used to version keys by model and to key by text."""
    return hashlib.sha1(s.encode("utf-8")).hexdigest()[:n]

class VectorCacheRepo:
    """
    Redis adapter for preference-text embeddings, shared across workers.
    No business logic here, just cache access.
    """
    def __init__(self, redis: Redis, prefix: str = "qvec"):
        self.redis = redis
        self.prefix = prefix

    def key(self, text: str, model: str) -> str:
        """Key for a text embedding, versioned by model."""
        return f"{self.prefix}:{_stable_hash(model)}:{_stable_hash(text, 20)}"

    async def get(self, key: str) -> Optional[list[float]]:
        if raw := await self.redis.get(key):
            return json.loads(raw)
        return None

    async def set(self, key: str, vector: Sequence[float], ttl: int) -> None:
        await self.redis.set(key, json.dumps(list(vector), separators=(",", ":")), ex=ttl)
