# giftrecs/domain/repositories/product_repo.py

from __future__ import annotations
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from giftrecs.domain.services.constants import KIND_SIMILAR

class ProductRepo:
    """
    Read access to stored product vectors, kept per kind under:
      vectors.<kind> = { model, vector, updated_at }
    Vectors are written by the ingestion side, not by this service.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col = db[collection_name]

    async def get_vector(self, product_id: str, kind: str = KIND_SIMILAR) -> Optional[list[float]]:
        proj = {f"vectors.{kind}.vector": 1, "_id": 0}
        doc = await self.col.find_one({"product_id": product_id}, proj)
        if not doc:
            return None
        node = doc.get("vectors", {}).get(kind) if isinstance(doc.get("vectors"), dict) else None
        return node.get("vector") if isinstance(node, dict) and "vector" in node else None
