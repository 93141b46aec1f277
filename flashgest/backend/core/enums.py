from enum import Enum


class Difficulty(str, Enum):
    EASY = "EASY"
    HARD = "HARD"
    WRONG = "WRONG"


class GestureLabel(str, Enum):
    THUMBS_UP = "thumbs_up"
    THUMBS_DOWN = "thumbs_down"
    FLAT_HAND = "flat_hand"
    UNKNOWN = "unknown"


# жест -> оценка карточки
GESTURE_RATINGS = {
    GestureLabel.THUMBS_UP: Difficulty.EASY,
    GestureLabel.FLAT_HAND: Difficulty.HARD,
    GestureLabel.THUMBS_DOWN: Difficulty.WRONG,
}
