# giftrecs/domain/repositories/session_repo.py

from __future__ import annotations
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from giftrecs.domain.models.session import SessionConstraints


class SessionRepo:
    """
    Session profiles in the 'recommendation_sessions' collection, one document
    per session_id. Every write is a single-document operation.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "recommendation_sessions"):
        self.col = db[collection_name]

    async def find(self, session_id: str) -> Optional[Dict[str, Any]]:
        return await self.col.find_one({"session_id": session_id}, {"_id": 0})

    async def upsert(
        self,
        session_id: str,
        embedding: List[float],
        constraints: SessionConstraints,
    ) -> Optional[Dict[str, Any]]:
        """
        Create-or-update keyed by session_id, returning the stored document.
        Embedding and form context are replaced; excluded/seen ids are unioned.
        """
        now = datetime.now(timezone.utc)
        return await self.col.find_one_and_update(
            {"session_id": session_id},
            {
                "$set": {
                    "embedding": embedding,
                    "constraints.interests": constraints.interests,
                    "constraints.occasion": constraints.occasion,
                    "constraints.relationship": constraints.relationship,
                    "constraints.min_price": constraints.min_price,
                    "constraints.max_price": constraints.max_price,
                    "updated_at": now,
                },
                "$setOnInsert": {"created_at": now},
                "$addToSet": {
                    "constraints.excluded_ids": {"$each": constraints.excluded_ids},
                    "constraints.seen_ids": {"$each": constraints.seen_ids},
                },
            },
            projection={"_id": 0},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def add_ids(self, session_id: str, field: str, ids: List[str]) -> None:
        """Union `ids` into constraints.<field> (seen_ids / excluded_ids)."""
        await self.col.update_one(
            {"session_id": session_id},
            {
                "$addToSet": {f"constraints.{field}": {"$each": ids}},
                "$set": {"updated_at": datetime.now(timezone.utc)},
            },
        )

    async def set_embedding(self, session_id: str, embedding: List[float]) -> None:
        await self.col.update_one(
            {"session_id": session_id},
            {"$set": {"embedding": embedding, "updated_at": datetime.now(timezone.utc)}},
        )

    async def start_listing(self, session_id: str, hidden_ids: List[str]) -> None:
        """Freeze the ids hidden from the listing that starts now."""
        await self.col.update_one(
            {"session_id": session_id},
            {
                "$set": {
                    "constraints.listing_excluded_ids": hidden_ids,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )
