from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from flashgest.backend.core.enums import Difficulty


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CardCreate(BaseModel):
    front: str
    back: str
    hint: str = ""
    tags: List[str] = Field(default_factory=list)


class Card(CardCreate):
    id: str = Field(default_factory=lambda: uuid4().hex)
    created_at: datetime = Field(default_factory=_now)
    last_reviewed: Optional[datetime] = None
    difficulty: Optional[Difficulty] = None

    model_config = ConfigDict(from_attributes=True)
