import asyncio

import pytest

from flashgest.backend.core.enums import Difficulty, GestureLabel
from flashgest.backend.core.exceptions import CardNotFoundError
from flashgest.backend.db import requests
from flashgest.backend.ml.debounce import GestureDebouncer
from flashgest.backend.review.session import PresentationState, ReviewSession
from flashgest.backend.srs.leitner import NO_HINT


@pytest.fixture
def review(storage, deferred):
    def _make(day=0):
        session = ReviewSession(storage, day=day, display_delay=0.5, schedule=deferred)
        session.load()
        return session
    return _make


class TestLoad:

    def test_empty_store_is_finished(self, review):
        session = review()
        assert session.state is PresentationState.FINISHED
        assert session.current is None

    def test_only_due_cards_are_queued(self, storage, make_card, review):
        daily, weekly = make_card("daily"), make_card("every 8 days")
        storage.set_buckets({0: frozenset({daily.id}), 3: frozenset({weekly.id})})

        assert [c.front for c in review(day=4).queue] == ["daily"]
        assert [c.front for c in review(day=8).queue] == ["daily", "every 8 days"]


class TestSubmitRating:

    def test_commit_moves_card_and_logs_review(self, storage, make_card, review, deferred):
        card = make_card()
        session = review()

        record = session.submit_rating(card, Difficulty.EASY)

        assert record.from_bucket == 0 and record.to_bucket == 1
        assert session.state is PresentationState.LOCKED
        assert storage.get_buckets()[1] == {card.id}
        assert storage.list_reviews() == [record]
        assert storage.get_card(card.id).difficulty is Difficulty.EASY
        assert deferred.pending[0][0] == 0.5

    def test_second_rating_is_ignored(self, storage, make_card, review):
        card = make_card()
        session = review()

        assert session.submit_rating(card, Difficulty.EASY) is not None
        assert session.submit_rating(card, Difficulty.WRONG) is None

        assert len(storage.list_reviews()) == 1
        assert storage.get_buckets()[1] == {card.id}

    def test_rating_for_other_card_is_ignored(self, make_card, review):
        first, second = make_card("1"), make_card("2")
        session = review()
        other = second if session.current.id == first.id else first
        assert session.submit_rating(other, Difficulty.EASY) is None
        assert session.state is PresentationState.PRESENTED

    def test_advance_after_delay(self, make_card, review, deferred):
        first, second = make_card("1"), make_card("2")
        session = review()
        rated = session.current

        session.submit_rating(rated, Difficulty.HARD)
        deferred.run_all()

        assert session.state is PresentationState.PRESENTED
        assert [c.id for c in session.queue] == [c.id for c in (first, second) if c.id != rated.id]
        assert session.index == 0

    def test_queue_drains_to_finished(self, make_card, review, deferred):
        for i in range(3):
            make_card(str(i))
        session = review()

        while session.current is not None:
            session.submit_rating(session.current, Difficulty.EASY)
            deferred.run_all()

        assert session.state is PresentationState.FINISHED
        assert session.stats().total_practice_events == 3
        assert session.stats().cards_by_bucket[1] == 3

    def test_index_clamped_when_last_card_removed(self, make_card, review, deferred):
        for i in range(3):
            make_card(str(i))
        session = review()
        session.prev_card()
        assert session.index == 2

        session.submit_rating(session.current, Difficulty.WRONG)
        deferred.run_all()

        assert session.index == 1
        assert len(session.queue) == 2

    def test_failed_write_releases_lock(self, storage, make_card, review, monkeypatch):
        card = make_card()
        session = review()

        def boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(storage, "commit_review", boom)
        with pytest.raises(RuntimeError):
            session.submit_rating(card, Difficulty.EASY)
        assert session.state is PresentationState.PRESENTED

    def test_failed_bucket_write_stores_nothing(self, storage, make_card, review, monkeypatch):
        card = make_card()
        session = review()
        calls = []
        real_dump = requests._dump_buckets

        def dump_once_broken(buckets):
            calls.append(buckets)
            if len(calls) == 1:
                raise RuntimeError("disk full")
            return real_dump(buckets)

        monkeypatch.setattr(requests, "_dump_buckets", dump_once_broken)
        with pytest.raises(RuntimeError):
            session.submit_rating(card, Difficulty.EASY)

        assert storage.list_reviews() == []
        assert storage.get_card(card.id).last_reviewed is None

        session.submit_rating(card, Difficulty.EASY)

        assert [r.rating for r in storage.list_reviews()] == [Difficulty.EASY]
        assert storage.get_buckets()[1] == {card.id}

    def test_deleted_card_cannot_be_rated(self, storage, make_card, review):
        card = make_card()
        session = review()
        storage.delete_card(card.id)

        with pytest.raises(CardNotFoundError):
            session.submit_rating(card, Difficulty.EASY)

        assert storage.list_reviews() == []
        assert session.state is PresentationState.PRESENTED

        assert session.state is PresentationState.PRESENTED

    def test_without_event_loop_advances_immediately(self, storage, make_card):
        card = make_card()
        session = ReviewSession(storage, day=0)
        session.load()
        session.submit_rating(card, Difficulty.EASY)
        assert session.state is PresentationState.FINISHED

    async def test_with_event_loop_advances_later(self, storage, make_card):
        card = make_card()
        session = ReviewSession(storage, day=0, display_delay=0.01)
        session.load()

        session.submit_rating(card, Difficulty.EASY)
        assert session.state is PresentationState.LOCKED

        await asyncio.sleep(0.05)
        assert session.state is PresentationState.FINISHED


class TestNavigation:

    def test_next_and_prev_wrap(self, make_card, review):
        for i in range(3):
            make_card(str(i))
        session = review()
        session.prev_card()
        assert session.index == 2
        session.next_card()
        assert session.index == 0

    def test_navigation_resets_flip_and_hint(self, make_card, review):
        make_card("1")
        make_card("2")
        session = review()
        session.flip()
        session.toggle_hint()
        session.next_card()
        assert session.flipped is False
        assert session.hint is None

    def test_hint(self, make_card, review):
        make_card(hint="")
        session = review()
        assert session.hint is None
        session.toggle_hint()
        assert session.hint == NO_HINT


class TestGestures:

    def test_gate_requires_flip(self, make_card, review):
        make_card()
        session = review()
        assert session.gesture_gate() is False
        session.flip()
        assert session.gesture_gate() is True

    @pytest.mark.parametrize("label,rating", [
        (GestureLabel.THUMBS_UP, Difficulty.EASY),
        (GestureLabel.FLAT_HAND, Difficulty.HARD),
        (GestureLabel.THUMBS_DOWN, Difficulty.WRONG),
    ])
    def test_gesture_mapping(self, make_card, review, label, rating):
        make_card()
        session = review()
        session.flip()
        assert session.on_gesture(label).rating is rating

    def test_unknown_gesture_ignored(self, make_card, review):
        make_card()
        session = review()
        assert session.on_gesture(GestureLabel.UNKNOWN) is None

    def test_gesture_and_button_rate_once(self, storage, make_card, review, clock):
        card = make_card()
        session = review()
        debouncer = GestureDebouncer(session.on_gesture, session.gesture_gate, clock=clock)

        debouncer.feed(GestureLabel.THUMBS_UP)
        assert storage.list_reviews() == []

        session.flip()
        session.submit_rating(card, Difficulty.HARD)
        debouncer.feed(GestureLabel.THUMBS_UP)

        reviews = storage.list_reviews()
        assert [r.rating for r in reviews] == [Difficulty.HARD]
