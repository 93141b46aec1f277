from pydantic import BaseModel
from typing import Dict


class ProgressStats(BaseModel):
    total_cards: int
    cards_by_bucket: Dict[int, int]
    success_rate: float
    average_moves_per_card: float
    total_practice_events: int
