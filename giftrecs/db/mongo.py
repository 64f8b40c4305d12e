# giftrecs/db/mongo.py
import logging
from typing import Any, Dict

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from giftrecs.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None

# collections owned by this service (products are written by ingestion)
SESSIONS = "recommendation_sessions"
EVENTS = "recommendation_events"


def get_client() -> AsyncIOMotorClient:
    assert _client is not None, "Mongo client not initialized"
    return _client


def get_db() -> AsyncIOMotorDatabase:
    assert _db is not None, "Mongo DB not initialized"
    return _db


def _client_options(uri: str) -> Dict[str, Any]:
    opts: Dict[str, Any] = {
        "uuidRepresentation": "standard",
        "serverSelectionTimeoutMS": 6000,
        "connectTimeoutMS": 6000,
    }
    if uri.startswith("mongodb+srv"):
        # Atlas SRV: slim containers ship without a CA bundle
        opts["tlsCAFile"] = certifi.where()
    return opts


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Session lookups by id, event reads per session in time order."""
    await db[SESSIONS].create_index([("session_id", ASCENDING)], unique=True)
    await db[EVENTS].create_index([("session_id", ASCENDING), ("created_at", DESCENDING)])


async def connect(settings: Settings | None = None) -> None:
    """
    Build the Motor client and check it with a ping.

    Motor connects lazily, so a failed ping leaves the client in place and
    the first query retries. Index creation is attempted only once the
    ping succeeds.
    """
    global _client, _db
    settings = settings or get_settings()

    try:
        _client = AsyncIOMotorClient(settings.MONGO_URI, **_client_options(settings.MONGO_URI))
        _db = _client[settings.MONGO_DB]
    except Exception as e:
        _client, _db = None, None
        logger.error(f"Mongo client init failed: {e}")
        return

    try:
        await _client.admin.command("ping")
    except Exception as e:
        logger.warning(f"Mongo ping at startup failed, first query will retry: {e}")
        return
    logger.info(f"Mongo connected db={settings.MONGO_DB}")

    try:
        await ensure_indexes(_db)
    except Exception as e:
        logger.warning(f"Mongo index creation skipped: {e}")


async def disconnect() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
    _client, _db = None, None
