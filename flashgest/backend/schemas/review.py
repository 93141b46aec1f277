from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone

from flashgest.backend.core.enums import Difficulty


class ReviewRecord(BaseModel):
    card_id: str
    card_front: str
    card_back: str
    rating: Difficulty
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    from_bucket: int
    to_bucket: int

    model_config = ConfigDict(frozen=True)
