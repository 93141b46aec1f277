from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from flashgest.backend.core.enums import Difficulty, GestureLabel, GESTURE_RATINGS
from flashgest.backend.db.requests import Storage
from flashgest.backend.schemas.card import Card
from flashgest.backend.schemas.progress import ProgressStats
from flashgest.backend.schemas.review import ReviewRecord
from flashgest.backend.srs.leitner import apply_rating, day_index, due_set, get_hint
from flashgest.backend.srs.progress import compute_stats

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_DELAY_S = 0.6


class PresentationState(str, Enum):
    PRESENTED = "presented"
    LOCKED = "locked"
    FINISHED = "finished"


def call_later(delay: float, fn: Callable[[], None]) -> None:
    # внутри event loop откладываем, без него выполняем сразу
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        fn()
        return
    loop.call_later(delay, fn)


class ReviewSession:
    """
    Одна сессия повторения.

    PRESENTED -> (оценка кнопкой или жестом) -> LOCKED -> запись в хранилище
    -> пауза display_delay -> карточка убирается из очереди -> следующая
    PRESENTED или FINISHED, если очередь пуста.

    Кнопка и жест сходятся в submit_rating; блокировка проверяется и
    ставится синхронно, поэтому вторая оценка той же карточки игнорируется.
    """

    def __init__(
        self,
        storage: Storage,
        day: Optional[int] = None,
        display_delay: float = DEFAULT_DISPLAY_DELAY_S,
        schedule: Callable[[float, Callable[[], None]], None] = call_later,
    ):
        self.storage = storage
        self.day = day_index() if day is None else day
        self.display_delay = display_delay
        self._schedule = schedule

        self.queue: List[Card] = []
        self.index = 0
        self.state = PresentationState.FINISHED
        self.flipped = False
        self.show_hint = False

    def load(self) -> int:
        cards = {c.id: c for c in self.storage.get_all_cards()}
        buckets = self.storage.get_buckets()
        due = due_set(buckets, self.day)

        position = {cid: n for n, ids in buckets.items() for cid in ids}
        self.queue = sorted(
            (cards[cid] for cid in due if cid in cards),
            key=lambda c: (position.get(c.id, 0), c.created_at, c.id),
        )
        self.index = 0
        self._present()

        logger.info("day %d: %d cards due", self.day, len(self.queue))
        return len(self.queue)

    @property
    def current(self) -> Optional[Card]:
        if self.state is PresentationState.FINISHED or not self.queue:
            return None
        return self.queue[self.index]

    @property
    def hint(self) -> Optional[str]:
        card = self.current
        if card is None or not self.show_hint:
            return None
        return get_hint(card)

    def _present(self) -> None:
        self.flipped = False
        self.show_hint = False
        self.state = PresentationState.PRESENTED if self.queue else PresentationState.FINISHED

    def flip(self) -> None:
        if self.state is not PresentationState.FINISHED:
            self.flipped = True

    def toggle_hint(self) -> bool:
        self.show_hint = not self.show_hint
        return self.show_hint

    def gesture_gate(self) -> bool:
        """Жест принимается, только когда карточка показана и уже перевёрнута."""
        return self.state is PresentationState.PRESENTED and self.flipped

    def next_card(self) -> Optional[Card]:
        if self.state is PresentationState.PRESENTED:
            self.index = (self.index + 1) % len(self.queue)
            self._present()
        return self.current

    def prev_card(self) -> Optional[Card]:
        if self.state is PresentationState.PRESENTED:
            self.index = (self.index - 1) % len(self.queue)
            self._present()
        return self.current

    def submit_rating(self, card: Card, rating: Difficulty) -> Optional[ReviewRecord]:
        if self.state is not PresentationState.PRESENTED:
            return None
        current = self.current
        if current is None or card.id != current.id:
            return None

        self.state = PresentationState.LOCKED
        rating = Difficulty(rating)

        try:
            buckets = self.storage.get_buckets()
            transition = apply_rating(buckets, card.id, rating)

            record = ReviewRecord(
                card_id=card.id,
                card_front=card.front,
                card_back=card.back,
                rating=rating,
                timestamp=datetime.now(timezone.utc),
                from_bucket=transition.from_bucket,
                to_bucket=transition.to_bucket,
            )
            self.storage.commit_review(record, transition.buckets)
        except Exception:
            # транзакция откатилась целиком: снимаем блокировку, карточку можно оценить снова
            self.state = PresentationState.PRESENTED
            raise

        logger.info(
            "card %s rated %s: bucket %d -> %d",
            card.id, rating.value, transition.from_bucket, transition.to_bucket,
        )

        self._schedule(self.display_delay, lambda: self.advance(card.id))
        return record

    def advance(self, card_id: Optional[str] = None) -> Optional[Card]:
        """Убирает оценённую карточку из очереди и показывает следующую."""
        if self.state is not PresentationState.LOCKED:
            return self.current

        card_id = card_id or self.queue[self.index].id
        self.queue = [c for c in self.queue if c.id != card_id]
        self.index = max(0, min(self.index, len(self.queue) - 1))
        self._present()
        return self.current

    def on_gesture(self, label: GestureLabel) -> Optional[ReviewRecord]:
        rating = GESTURE_RATINGS.get(GestureLabel(label))
        card = self.current
        if rating is None or card is None:
            return None
        return self.submit_rating(card, rating)

    def stats(self) -> ProgressStats:
        return compute_stats(self.storage.get_buckets(), self.storage.list_reviews())
