from __future__ import annotations

import logging
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, NamedTuple, Optional

from flashgest.backend.core.enums import Difficulty
from flashgest.backend.core.exceptions import BucketInvariantError

logger = logging.getLogger(__name__)

# Корзина -> множество id карточек.
# Корзина 0 повторяется каждый день, корзина n раз в 2**n дней.
BucketMap = Dict[int, FrozenSet[str]]

EPOCH = date(1970, 1, 1)
NO_HINT = "No hint available for this card."


class Transition(NamedTuple):
    buckets: BucketMap
    from_bucket: int
    to_bucket: int


def day_index(on: Optional[date] = None) -> int:
    """Номер дня от 1970-01-01 (монотонный счётчик для due_set)."""
    on = on or date.today()
    return (on - EPOCH).days


def to_bucket_sets(buckets: BucketMap) -> List[FrozenSet[str]]:
    """
    Разреженный BucketMap -> плотный список длиной max(keys)+1.
    Пропущенные индексы заполняются пустыми множествами.
    """
    size = max(buckets.keys(), default=0) + 1
    sets: List[FrozenSet[str]] = [frozenset()] * size
    for n, ids in buckets.items():
        sets[n] = frozenset(ids)
    return sets


def due_set(buckets: BucketMap, day: int) -> FrozenSet[str]:
    """
    Карточки, которые нужно повторить в день `day`:
    вся корзина 0 + корзина n (n >= 1), если day % 2**n == 0.
    """
    sets = to_bucket_sets(buckets)
    due = set(sets[0])
    for n in range(1, len(sets)):
        if day % (1 << n) == 0:
            due.update(sets[n])
    return frozenset(due)


def bucket_of(buckets: BucketMap, card_id: str) -> Optional[int]:
    found = [n for n, ids in buckets.items() if card_id in ids]
    if len(found) > 1:
        raise BucketInvariantError(
            f"card {card_id} is in several buckets: {sorted(found)}"
        )
    return found[0] if found else None


def apply_rating(buckets: BucketMap, card_id: str, rating: Difficulty) -> Transition:
    """
    Переносит карточку после оценки:
      WRONG -> корзина 0
      HARD  -> остаётся в своей корзине
      EASY  -> следующая корзина (интервал удваивается)

    Входной словарь не меняется: копируются только затронутые корзины.
    """
    rating = Difficulty(rating)
    origin = bucket_of(buckets, card_id)
    if origin is None:
        logger.warning("card %s not found in any bucket, assuming bucket 0", card_id)
        origin = 0

    if rating == Difficulty.WRONG:
        dest = 0
    elif rating == Difficulty.HARD:
        dest = origin
    else:
        dest = origin + 1

    updated = dict(buckets)
    updated[origin] = buckets.get(origin, frozenset()) - {card_id}
    updated[dest] = updated.get(dest, frozenset()) | {card_id}

    return Transition(updated, origin, dest)


def reconcile_buckets(buckets: BucketMap, card_ids: Iterable[str]) -> BucketMap:
    """
    Приводит сохранённые корзины к инварианту "каждая карточка ровно в одной корзине":
    - id без карточки выкидываются
    - при дублях остаётся самая младшая корзина
    - карточки без корзины попадают в 0
    """
    known = set(card_ids)
    seen = set()
    fixed: Dict[int, FrozenSet[str]] = {}

    for n in sorted(buckets):
        keep = frozenset(cid for cid in buckets[n] if cid in known and cid not in seen)
        dropped = len(buckets[n]) - len(keep)
        if dropped:
            logger.warning("bucket %d: dropped %d stale or duplicate ids", n, dropped)
        seen.update(keep)
        fixed[n] = keep

    orphans = known - seen
    if orphans:
        logger.warning("%d cards had no bucket, placing them into bucket 0", len(orphans))
        fixed[0] = fixed.get(0, frozenset()) | orphans

    return fixed


def get_hint(card) -> str:
    hint = getattr(card, "hint", None)
    if hint and hint.strip():
        return hint
    return NO_HINT
