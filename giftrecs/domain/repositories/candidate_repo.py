# giftrecs/domain/repositories/candidate_repo.py
from __future__ import annotations
from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorCollection

from giftrecs.domain.models.product import Pool, POOL_VENDOR
from giftrecs.domain.services.constants import (
    STATUS_APPROVED,
    AVAILABILITY_OUT_OF_STOCK,
    KIND_SIMILAR,
)


class CandidateRepo:
    """
    MongoDB Atlas access for recommendation candidates.

    Two disjoint pools live in the same 'products' collection: vendor products
    carry a `vendor_email`, affiliate products do not. Every query applies the
    admission predicate (approved, in stock, priced, at least one image), so
    rows that violate it never reach the pipeline.
    """

    VECTOR_INDEX = "vector_index"

    # never ship stored vectors back to the app
    PROJECTION: Dict[str, Any] = {"_id": 0, "vectors": 0, "status": 0}

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col: AsyncIOMotorCollection = db[collection_name]

    # ---------- Predicate ----------
    @staticmethod
    def admission_filter(
        pool: Pool,
        country: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
    ) -> Dict[str, Any]:
        """MQL for: pool membership + approved/in-stock/priced/imaged (+ region, budget)."""
        price: Dict[str, Any] = {"$gt": 0}
        # budget bounds are inclusive
        if min_price is not None:
            price["$gte"] = min_price
        if max_price is not None:
            price["$lte"] = max_price
        parts: List[Dict[str, Any]] = [
            {"status": STATUS_APPROVED},
            {"availability": {"$ne": AVAILABILITY_OUT_OF_STOCK}},
            {"price": price},
            {"images.0": {"$exists": True}},
            {"vendor_email": {"$ne": None}} if pool == POOL_VENDOR else {"vendor_email": None},
        ]
        if country:
            parts.append({
                "$or": [
                    {"region_mask": {"$exists": False}},
                    {"region_mask": {"$size": 0}},
                    {"region_mask": country.upper()},
                ]
            })
        return {"$and": parts}

    # ---------- Vector search ----------
    async def vector_search(
        self,
        query_vector: List[float],
        pool: Pool,
        limit: int,
        country: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        path: str = f"vectors.{KIND_SIMILAR}.vector",
    ) -> List[Dict[str, Any]]:
        """
        Nearest neighbours via $vectorSearch, nearest first.

        The predicate is applied as a $match after the search, so the search
        over-fetches and the final $limit trims back to `limit`.
        Atlas cosine scores are (1 + cos) / 2; `similarity` is reported as
        1 - cosine distance, i.e. 2 * score - 1.
        """
        num_candidates = max(200, 10 * limit)
        pipeline: List[Dict[str, Any]] = [
            {
                "$vectorSearch": {
                    "index": self.VECTOR_INDEX,
                    "path": path,
                    "queryVector": query_vector,
                    "numCandidates": num_candidates,
                    "limit": min(num_candidates, 5 * limit),
                }
            },
            {
                "$addFields": {
                    "similarity": {
                        "$subtract": [{"$multiply": [2, {"$meta": "vectorSearchScore"}]}, 1]
                    }
                }
            },
            {"$match": self.admission_filter(pool, country, min_price, max_price)},
            {"$limit": limit},
            {"$project": self.PROJECTION},
        ]

        cursor = self.col.aggregate(pipeline)
        return [doc async for doc in cursor]

    # ---------- Heuristic fallback ----------
    async def heuristic_search(
        self,
        pool: Pool,
        limit: int,
        country: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """Same predicate, ordered by quality, recency, popularity (all desc)."""
        cursor = (
            self.col.find(self.admission_filter(pool, country, min_price, max_price), self.PROJECTION)
            .sort([
                ("quality_score", -1),
                ("recency_score", -1),
                ("popularity_score", -1),
            ])
            .limit(limit)
        )
        return [doc async for doc in cursor]
