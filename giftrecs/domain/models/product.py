from pydantic import BaseModel, Field
from typing import Optional, List, Literal

Pool = Literal["vendor", "affiliate"]

POOL_VENDOR: Pool = "vendor"
POOL_AFFILIATE: Pool = "affiliate"

class CandidateProduct(BaseModel):
    """
    A product eligible for recommendation, as returned by the candidate store.
    Scores are optional: `similarity` only exists when the row came from the
    vector search, and missing signals are defaulted inside scoring only.
    """
    product_id: str
    title: str
    description: Optional[str] = None
    price: float = Field(gt=0)
    currency: Optional[str] = None
    images: List[str] = Field(min_length=1)
    affiliate_url: Optional[str] = None
    categories: List[str] = []
    retailer: Optional[str] = None
    source: Optional[str] = None
    availability: Optional[str] = None
    vendor_email: Optional[str] = None
    region_mask: List[str] = []

    # fulfilment metadata
    prime_eligible: bool = False
    free_shipping: bool = False
    delivery_days: Optional[int] = None
    seller_name: Optional[str] = None
    seller_rating: Optional[float] = None
    best_seller: bool = False
    marketplace_id: Optional[str] = None
    listing_type: Optional[str] = None

    # ranking signals
    quality_score: Optional[float] = None
    recency_score: Optional[float] = None
    popularity_score: Optional[float] = None
    similarity: Optional[float] = None

    model_config = {"frozen": True}  # immuable = safe

    @property
    def is_vendor(self) -> bool:
        return self.vendor_email is not None

    @property
    def pool(self) -> Pool:
        return POOL_VENDOR if self.is_vendor else POOL_AFFILIATE

class RankedProduct(CandidateProduct):
    final_score: float
    rank: int = Field(ge=1)
    badges: List[str] = []

class RecommendationPage(BaseModel):
    page: int
    has_more: bool
    products: List[RankedProduct]
    model_config = {"frozen": True}
