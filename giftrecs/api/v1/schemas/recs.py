# giftrecs/api/v1/schemas/recs.py
from pydantic import BaseModel, Field, model_validator
from typing import Any, Dict, List, Literal, Optional

from giftrecs.domain.models.product import RankedProduct


class GiftForm(BaseModel):
    occasion: str = Field(..., min_length=1, max_length=100)
    relationship: str = Field(..., min_length=1, max_length=100)
    interests: List[str] = Field(default_factory=list, max_length=20)
    min_price: Optional[float] = Field(default=None, ge=0)
    max_price: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_budget(self) -> "GiftForm":
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price must not exceed max_price")
        return self

    def preference_text(self) -> str:
        return f"{self.occasion} gift for {self.relationship} who likes {', '.join(self.interests)}"


class RecommendationRequest(BaseModel):
    form: GiftForm
    session_id: Optional[str] = Field(default=None, max_length=100)
    user_id: Optional[str] = None
    page: int = Field(0, ge=0)
    page_size: Optional[int] = Field(default=None, ge=1, le=60)
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)


class RecommendedProductOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    price: float
    currency: Optional[str] = None
    image_url: str
    affiliate_url: Optional[str] = None
    match_score: float
    rank: int
    categories: List[str]
    is_vendor: bool
    vendor: Optional[str] = None
    badges: List[str]
    delivery_days: Optional[int] = None

    @classmethod
    def from_ranked(cls, p: RankedProduct) -> "RecommendedProductOut":
        return cls(
            id=p.product_id,
            title=p.title,
            description=p.description,
            price=p.price,
            currency=p.currency,
            image_url=p.images[0],
            affiliate_url=p.affiliate_url,
            match_score=p.final_score,
            rank=p.rank,
            categories=p.categories,
            is_vendor=p.is_vendor,
            vendor=p.retailer,
            badges=p.badges,
            delivery_days=p.delivery_days,
        )


class RecommendationResponse(BaseModel):
    session_id: str
    page: int
    has_more: bool
    recommendations: List[RecommendedProductOut]


class EventIn(BaseModel):
    session_id: str
    product_id: str
    action: Literal["CLICK", "SAVE", "DISLIKE", "LIKE"]
    user_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
