from __future__ import annotations

import time
from enum import Enum
from typing import Callable, Optional

from flashgest.backend.core.enums import GestureLabel

DEFAULT_COOLDOWN_S = 1.8


class DebounceState(str, Enum):
    IDLE = "idle"
    COOLING = "cooling"


class GestureDebouncer:
    """
    Поток покадровых меток -> редкие события жестов.

    Детектор выдаёт метку на каждом кадре (десятки раз в секунду), пока
    пользователь держит позу. Событие отправляется, только если:
      - метка не unknown
      - состояние IDLE (нет активного cooldown)
      - gate() == True (карточка уже перевёрнута)
      - метка отличается от последней отправленной
    После отправки COOLING на cooldown_s секунд; по истечении IDLE и
    "последняя метка" забывается, поэтому тот же жест может сработать снова.
    """

    def __init__(
        self,
        on_gesture: Callable[[GestureLabel], None],
        gate: Callable[[], bool],
        cooldown_s: float = DEFAULT_COOLDOWN_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.on_gesture = on_gesture
        self.gate = gate
        self.cooldown_s = float(cooldown_s)
        self.clock = clock

        self.state = DebounceState.IDLE
        self.last_dispatched: Optional[GestureLabel] = None
        self._cooldown_until = 0.0

    def poll(self) -> DebounceState:
        """Проверяет истечение cooldown и возвращает текущее состояние."""
        if self.state is DebounceState.COOLING and self.clock() >= self._cooldown_until:
            self.state = DebounceState.IDLE
            self.last_dispatched = None
        return self.state

    def reset(self) -> None:
        self.state = DebounceState.IDLE
        self.last_dispatched = None
        self._cooldown_until = 0.0

    def feed(self, label: GestureLabel) -> bool:
        """Метка одного кадра. True, если событие было отправлено."""
        label = GestureLabel(label)
        if self.poll() is not DebounceState.IDLE:
            return False
        if label is GestureLabel.UNKNOWN:
            return False
        if label is self.last_dispatched:
            return False
        if not self.gate():
            return False

        self.last_dispatched = label
        self.state = DebounceState.COOLING
        self._cooldown_until = self.clock() + self.cooldown_s

        self.on_gesture(label)
        return True
