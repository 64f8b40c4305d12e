# giftrecs/api/deps.py
from fastapi import Depends, HTTPException, Request, status

from giftrecs.core.config import Settings, get_settings
from giftrecs.db.mongo import get_db
from giftrecs.db.redis import get_redis
from giftrecs.domain.repositories.candidate_repo import CandidateRepo
from giftrecs.domain.repositories.event_repo import EventRepo
from giftrecs.domain.repositories.product_repo import ProductRepo
from giftrecs.domain.repositories.session_repo import SessionRepo
from giftrecs.domain.repositories.vector_cache_repo import VectorCacheRepo
from giftrecs.domain.services.event_svc import EventRecorder
from giftrecs.domain.services.pipeline_svc import RecommendationPipeline
from giftrecs.domain.services.ranking_svc import RankingOptions
from giftrecs.domain.services.rerank_svc import build_reranker
from giftrecs.domain.services.session_svc import SessionProfileManager
from giftrecs.utils.rate_limit import TokenBucketLimiter

# Dependency for injecting the MongoDB database into endpoints/services
async def mongo_db(db = Depends(get_db)):
    return db

# Dependency for injecting the Redis client (or None) into endpoints/services
def redis_dep():
    return get_redis()


# ---------- Process-level collaborators (built in lifespan, held on app.state) ----------

def rate_limiter_dep(request: Request) -> TokenBucketLimiter:
    return request.app.state.rate_limiter

def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else "anon")
    return f"recs:{ip}"

async def enforce_rate_limit(request: Request, limiter: TokenBucketLimiter = Depends(rate_limiter_dep)) -> None:
    if not limiter.allow(client_key(request)):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limited")


# ---------- Request-scoped services ----------

def session_manager(
    request: Request,
    db = Depends(mongo_db),
    redis = Depends(redis_dep),
    settings: Settings = Depends(get_settings),
) -> SessionProfileManager:
    return SessionProfileManager(
        SessionRepo(db),
        request.app.state.embedder,
        embedding_model=settings.OPENAI_EMBEDDING_MODEL,
        max_chars=settings.embedding_max_chars,
        memo=request.app.state.embedding_memo,
        vector_cache=VectorCacheRepo(redis, prefix=settings.vector_cache_prefix) if redis else None,
        vector_cache_ttl=settings.vector_cache_ttl,
    )

def event_recorder(
    request: Request,
    db = Depends(mongo_db),
    profiles: SessionProfileManager = Depends(session_manager),
) -> EventRecorder:
    return EventRecorder(
        EventRepo(db),
        request.app.state.runner,
        profiles=profiles,
        product_repo=ProductRepo(db),
    )

def recommendation_pipeline(
    request: Request,
    db = Depends(mongo_db),
    profiles: SessionProfileManager = Depends(session_manager),
    recorder: EventRecorder = Depends(event_recorder),
    settings: Settings = Depends(get_settings),
) -> RecommendationPipeline:
    return RecommendationPipeline(
        CandidateRepo(db),
        profiles,
        recorder,
        request.app.state.runner,
        reranker=build_reranker(settings, request.app.state.chat),
        ranking_options=RankingOptions.from_settings(settings),
        pool_limit=settings.recs_pool_limit,
    )
