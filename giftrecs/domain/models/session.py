from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class SessionConstraints(BaseModel):
    interests: List[str] = Field(default_factory=list)
    excluded_ids: List[str] = Field(default_factory=list)
    seen_ids: List[str] = Field(default_factory=list)

    # seen + excluded ids frozen when the current listing started (page 0);
    # later pages rank against this so page offsets stay aligned
    listing_excluded_ids: List[str] = Field(default_factory=list)

    # gift form context; the price range bounds candidate retrieval
    occasion: Optional[str] = None
    relationship: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None

class SessionProfile(BaseModel):
    """
    Per-session recommendation state. An empty embedding means there is no
    semantic signal and ranking runs on heuristics only.
    """
    session_id: str
    embedding: List[float] = Field(default_factory=list)
    constraints: SessionConstraints = Field(default_factory=SessionConstraints)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_embedding(self) -> bool:
        return len(self.embedding) > 0
