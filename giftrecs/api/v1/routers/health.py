# giftrecs/api/v1/routers/health.py
import subprocess
import time

from fastapi import APIRouter, Request

from giftrecs.core.config import get_settings
from giftrecs.db import mongo
from giftrecs.db.redis import get_redis

router = APIRouter(tags=["health"])
START_TIME = time.time()

OK, SKIPPED = "ok", "skipped"


def _version(git_sha: str) -> str:
    if git_sha != "unknown":
        return git_sha
    try:
        out = subprocess.check_output(["git", "rev-parse", "--short", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except Exception:
        return "unknown"


async def _check_mongo() -> str:
    try:
        await mongo.get_db().command("ping")
        return OK
    except Exception as e:
        return f"error: {e}"


async def _check_redis() -> str:
    client = get_redis()
    if client is None:
        return SKIPPED
    try:
        await client.ping()
        return OK
    except Exception as e:
        return f"error: {e}"


@router.get("/health")
async def health(request: Request):
    """
    Store checks decide the status. Missing OpenAI credentials only turn
    ranking heuristic-only, so they are reported without failing the check.
    """
    settings = get_settings()
    runner = getattr(request.app.state, "runner", None)

    stores = {"mongodb": await _check_mongo(), "redis": await _check_redis()}
    checks = {
        "app_name": settings.APP_NAME,
        "env": settings.APP_ENV,
        "debug": settings.DEBUG,
        "version": _version(settings.GIT_SHA),
        "uptime_seconds": int(time.time() - START_TIME),
        **stores,
        "openai_api_key_set": bool(settings.OPENAI_API_KEY),
        "llm_rerank": settings.RECS_LLM_RERANK_ENABLED,
        "background_pending": runner.pending if runner else 0,
    }
    status = "ok" if all(v in (OK, SKIPPED) for v in stores.values()) else "error"
    return {"status": status, "checks": checks, "timestamp": int(time.time())}
