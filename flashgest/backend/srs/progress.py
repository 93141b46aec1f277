from collections import Counter
from typing import FrozenSet, Iterable, Sequence

from flashgest.backend.core.enums import Difficulty
from flashgest.backend.schemas.progress import ProgressStats
from flashgest.backend.schemas.review import ReviewRecord
from flashgest.backend.srs.leitner import BucketMap

# оценки, которые считаются "знал ответ"
KNEW_IT: FrozenSet[Difficulty] = frozenset({Difficulty.EASY, Difficulty.HARD})


def compute_stats(
    buckets: BucketMap,
    history: Sequence[ReviewRecord],
    knew_it: Iterable[Difficulty] = KNEW_IT,
) -> ProgressStats:
    knew_it = frozenset(knew_it)

    cards_by_bucket = {n: len(ids) for n, ids in sorted(buckets.items())}
    total_cards = sum(cards_by_bucket.values())

    correct = sum(1 for h in history if h.rating in knew_it)
    success_rate = (correct / len(history)) * 100 if history else 0.0

    # в истории лежит содержимое карточки, поэтому группируем по front+back
    moves = Counter((h.card_front, h.card_back) for h in history)
    average_moves = sum(moves.values()) / len(moves) if moves else 0.0

    return ProgressStats(
        total_cards=total_cards,
        cards_by_bucket=cards_by_bucket,
        success_rate=success_rate,
        average_moves_per_card=average_moves,
        total_practice_events=len(history),
    )
