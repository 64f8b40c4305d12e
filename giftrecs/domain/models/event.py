from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime, timezone

class EventAction(str, Enum):
    IMPRESSION = "IMPRESSION"
    CLICK = "CLICK"
    SAVE = "SAVE"
    DISLIKE = "DISLIKE"
    LIKE = "LIKE"

class RecommendationEvent(BaseModel):
    session_id: str
    user_id: Optional[str] = None
    product_id: Optional[str] = None
    action: EventAction
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Optional[Dict[str, Any]] = None

    model_config = {"frozen": True, "use_enum_values": True}  # append-only; enums stored as plain strings
