# giftrecs/domain/repositories/event_repo.py
from __future__ import annotations
from typing import List
from motor.motor_asyncio import AsyncIOMotorDatabase

from giftrecs.domain.models.event import RecommendationEvent


class EventRepo:
    """Append-only writes to the 'recommendation_events' collection."""

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "recommendation_events"):
        self.col = db[collection_name]

    async def insert_many(self, events: List[RecommendationEvent]) -> int:
        if not events:
            return 0
        res = await self.col.insert_many([e.model_dump() for e in events], ordered=False)
        return len(res.inserted_ids)

    async def insert_one(self, event: RecommendationEvent) -> None:
        await self.col.insert_one(event.model_dump())
