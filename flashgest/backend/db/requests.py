import json
import logging
from contextlib import contextmanager
from typing import List, Optional

from . import get_session
from .models import KeyValue, CARDS_KEY, REVIEWS_KEY, BUCKETS_KEY
from flashgest.backend.core.exceptions import CardNotFoundError
from flashgest.backend.schemas.card import Card, CardCreate
from flashgest.backend.schemas.review import ReviewRecord
from flashgest.backend.srs.leitner import BucketMap, reconcile_buckets

logger = logging.getLogger(__name__)


SAMPLE_CARDS = [
    CardCreate(
        front="What is the capital of France?",
        back="Paris",
        hint="City of Light",
        tags=["geography", "europe"],
    ),
    CardCreate(
        front="Who wrote 'To Kill a Mockingbird'?",
        back="Harper Lee",
        hint="Published in 1960",
        tags=["literature", "american"],
    ),
    CardCreate(
        front="What is the main function of CSS in web development?",
        back="To style and layout web pages",
        hint="Cascading Style Sheets",
        tags=["programming", "web"],
    ),
]


def _read(session, key: str, default):
    row = session.get(KeyValue, key)
    if row is None:
        return default
    return json.loads(row.value)


def _write(session, key: str, value) -> None:
    payload = json.dumps(value, ensure_ascii=False)
    row = session.get(KeyValue, key)
    if row is None:
        session.add(KeyValue(key=key, value=payload))
    else:
        row.value = payload


def _dump_buckets(buckets: BucketMap) -> dict:
    return {str(n): sorted(ids) for n, ids in buckets.items()}


def _load_buckets(raw: dict) -> BucketMap:
    return {int(n): frozenset(ids) for n, ids in raw.items()}


class Storage:
    """
    Локальное key-value хранилище (JSON) поверх SQLAlchemy.
    Три ключа: cards, reviews, buckets.
    """

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    @contextmanager
    def _session(self):
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # --- cards ---

    def get_all_cards(self) -> List[Card]:
        with self._session() as session:
            return [Card.model_validate(c) for c in _read(session, CARDS_KEY, [])]

    def get_card(self, card_id: str) -> Optional[Card]:
        for card in self.get_all_cards():
            if card.id == card_id:
                return card
        return None

    def save_card(self, data: CardCreate) -> Card:
        card = Card(**data.model_dump())

        # карточка и её место в корзине 0 пишутся одной транзакцией
        with self._session() as session:
            cards = _read(session, CARDS_KEY, [])
            cards.append(card.model_dump(mode="json"))
            _write(session, CARDS_KEY, cards)

            buckets = _load_buckets(_read(session, BUCKETS_KEY, {}))
            buckets[0] = buckets.get(0, frozenset()) | {card.id}
            _write(session, BUCKETS_KEY, _dump_buckets(buckets))

        logger.info("card %s created", card.id)
        return card

    def update_card(self, card_id: str, **updates) -> Optional[Card]:
        with self._session() as session:
            cards = _read(session, CARDS_KEY, [])
            for i, raw in enumerate(cards):
                if raw["id"] != card_id:
                    continue
                updated = Card.model_validate({**raw, **updates, "id": card_id})
                cards[i] = updated.model_dump(mode="json")
                _write(session, CARDS_KEY, cards)
                return updated
        return None

    def delete_card(self, card_id: str) -> bool:
        with self._session() as session:
            cards = _read(session, CARDS_KEY, [])
            remaining = [c for c in cards if c["id"] != card_id]
            if len(remaining) == len(cards):
                return False
            _write(session, CARDS_KEY, remaining)

            buckets = _load_buckets(_read(session, BUCKETS_KEY, {}))
            buckets = {n: ids - {card_id} for n, ids in buckets.items()}
            _write(session, BUCKETS_KEY, _dump_buckets(buckets))

        logger.info("card %s deleted", card_id)
        return True

    def populate_sample_cards(self) -> List[Card]:
        if self.get_all_cards():
            return []
        return [self.save_card(c) for c in SAMPLE_CARDS]

    # --- reviews ---

    def append_review(self, record: ReviewRecord) -> None:
        with self._session() as session:
            reviews = _read(session, REVIEWS_KEY, [])
            reviews.append(record.model_dump(mode="json"))
            _write(session, REVIEWS_KEY, reviews)

    def list_reviews(self) -> List[ReviewRecord]:
        with self._session() as session:
            return [ReviewRecord.model_validate(r) for r in _read(session, REVIEWS_KEY, [])]

    def list_reviews_by(self, card_id: str) -> List[ReviewRecord]:
        return [r for r in self.list_reviews() if r.card_id == card_id]

    # --- buckets ---

    def get_buckets(self) -> BucketMap:
        with self._session() as session:
            raw = _read(session, BUCKETS_KEY, {})
            card_ids = [c["id"] for c in _read(session, CARDS_KEY, [])]
        return reconcile_buckets(_load_buckets(raw), card_ids)

    def set_buckets(self, buckets: BucketMap) -> None:
        with self._session() as session:
            _write(session, BUCKETS_KEY, _dump_buckets(buckets))

    def commit_review(self, record: ReviewRecord, buckets: BucketMap) -> Card:
        """
        Итог одной оценки, одной транзакцией: запись в журнал, новые корзины,
        last_reviewed и difficulty у карточки. При ошибке не сохраняется ничего.
        """
        with self._session() as session:
            cards = _read(session, CARDS_KEY, [])
            pos = next((i for i, c in enumerate(cards) if c["id"] == record.card_id), None)
            if pos is None:
                raise CardNotFoundError(record.card_id)
            card = Card.model_validate({
                **cards[pos],
                "last_reviewed": record.timestamp,
                "difficulty": record.rating,
            })
            cards[pos] = card.model_dump(mode="json")
            _write(session, CARDS_KEY, cards)

            reviews = _read(session, REVIEWS_KEY, [])
            reviews.append(record.model_dump(mode="json"))
            _write(session, REVIEWS_KEY, reviews)

            _write(session, BUCKETS_KEY, _dump_buckets(buckets))

        return card
