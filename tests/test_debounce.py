import pytest

from flashgest.backend.core.enums import GestureLabel
from flashgest.backend.ml.debounce import DebounceState, GestureDebouncer


@pytest.fixture
def events():
    return []


@pytest.fixture
def gate():
    class Gate:
        open = True

        def __call__(self):
            return self.open

    return Gate()


@pytest.fixture
def debouncer(events, gate, clock):
    return GestureDebouncer(events.append, gate, cooldown_s=1.8, clock=clock)


class TestGestureDebouncer:

    def test_unknown_never_dispatches(self, debouncer, events):
        for _ in range(10):
            assert debouncer.feed(GestureLabel.UNKNOWN) is False
        assert events == []
        assert debouncer.state is DebounceState.IDLE

    def test_first_gesture_dispatches(self, debouncer, events):
        assert debouncer.feed(GestureLabel.THUMBS_UP) is True
        assert events == [GestureLabel.THUMBS_UP]
        assert debouncer.state is DebounceState.COOLING

    def test_sustained_pose_one_dispatch_per_window(self, debouncer, events, clock):
        # 30 fps for 1.5 s, well inside the 1.8 s cooldown
        for _ in range(45):
            debouncer.feed(GestureLabel.THUMBS_UP)
            clock.advance(1 / 30)
        assert events == [GestureLabel.THUMBS_UP]

    def test_changed_label_during_cooldown_is_dropped(self, debouncer, events, clock):
        debouncer.feed(GestureLabel.THUMBS_UP)
        clock.advance(1.0)
        assert debouncer.feed(GestureLabel.THUMBS_DOWN) is False
        assert events == [GestureLabel.THUMBS_UP]

    def test_changed_label_after_expiry_dispatches_once(self, debouncer, events, clock):
        debouncer.feed(GestureLabel.THUMBS_UP)
        clock.advance(2.0)
        for _ in range(10):
            debouncer.feed(GestureLabel.FLAT_HAND)
            clock.advance(0.05)
        assert events == [GestureLabel.THUMBS_UP, GestureLabel.FLAT_HAND]

    def test_same_label_fires_again_after_expiry(self, debouncer, events, clock):
        debouncer.feed(GestureLabel.THUMBS_UP)
        clock.advance(1.8)
        assert debouncer.poll() is DebounceState.IDLE
        assert debouncer.last_dispatched is None
        assert debouncer.feed(GestureLabel.THUMBS_UP) is True
        assert len(events) == 2

    def test_closed_gate_drops_silently(self, debouncer, events, gate):
        gate.open = False
        assert debouncer.feed(GestureLabel.THUMBS_UP) is False
        assert debouncer.state is DebounceState.IDLE
        gate.open = True
        assert debouncer.feed(GestureLabel.THUMBS_UP) is True
        assert events == [GestureLabel.THUMBS_UP]

    def test_reset(self, debouncer, events):
        debouncer.feed(GestureLabel.THUMBS_DOWN)
        debouncer.reset()
        assert debouncer.state is DebounceState.IDLE
        assert debouncer.feed(GestureLabel.THUMBS_DOWN) is True

    def test_accepts_string_labels(self, debouncer, events):
        assert debouncer.feed("flat_hand") is True
        assert events == [GestureLabel.FLAT_HAND]
