import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from flashgest.backend.db import Base
from flashgest.backend.db.requests import Storage
from flashgest.backend.schemas.card import CardCreate


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield Storage(sessionmaker(bind=engine))
    engine.dispose()


@pytest.fixture
def make_card(storage):
    def _make(front="Q", back="A", hint="", tags=None):
        return storage.save_card(CardCreate(front=front, back=back, hint=hint, tags=tags or []))
    return _make


class DeferredSchedule:
    """Collects delayed callbacks instead of running them."""

    def __init__(self):
        self.pending = []

    def __call__(self, delay, fn):
        self.pending.append((delay, fn))

    def run_all(self):
        pending, self.pending = self.pending, []
        for _, fn in pending:
            fn()


@pytest.fixture
def deferred():
    return DeferredSchedule()


def hand_points(thumb_tip_dy=0.0, finger_tip_dy=0.0, tip_offsets=(0, 0, 0, 0)):
    """
    21 synthetic keypoints. thumb_tip_dy / finger_tip_dy are tip.y - base.y
    (negative = above the base in image coordinates).
    """
    pts = [(200.0, 400.0)] * 21
    pts[1] = (150.0, 300.0)
    pts[4] = (150.0, 300.0 + thumb_tip_dy)
    for i, (base, tip) in enumerate(((5, 8), (9, 12), (13, 16), (17, 20))):
        x = 180.0 + 20 * i
        pts[base] = (x, 300.0)
        pts[tip] = (x, 300.0 + finger_tip_dy + tip_offsets[i])
    return pts
