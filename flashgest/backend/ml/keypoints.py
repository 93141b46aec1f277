from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from flashgest.backend.core.enums import GestureLabel

# -------------------------
# Константы
# -------------------------

NUM_KEYPOINTS = 21

# Абсолютный порог в пикселях кадра (не зависит от размера руки)
THUMB_MARGIN_PX = 30.0

# 0 = запястье, большой 1-4, указательный 5-8, средний 9-12, безымянный 13-16, мизинец 17-20
THUMB_BASE, THUMB_TIP = 1, 4
FINGER_BASES = (5, 9, 13, 17)
FINGER_TIPS = (8, 12, 16, 20)


@dataclass
class DetectedHand:
    score: float
    keypoints: Any   # (21, 2), пиксели кадра, y вниз


def _point_xy(p: Any) -> Optional[tuple]:
    """(x, y) из кортежа, объекта с .x/.y или словаря {"x", "y"}."""
    if p is None:
        return None
    if isinstance(p, dict):
        x, y = p.get("x"), p.get("y")
    elif hasattr(p, "x") and hasattr(p, "y"):
        x, y = p.x, p.y
    else:
        try:
            x, y = p[0], p[1]
        except (TypeError, IndexError, KeyError):
            return None
    if x is None or y is None:
        return None
    try:
        x, y = float(x), float(y)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return x, y


def keypoints_to_array(points: Any) -> Optional[np.ndarray]:
    """
    Точки руки -> np.ndarray формы (N, 2).
    None, если точек меньше 21 или хотя бы одна нужная точка битая.
    """
    if points is None:
        return None

    if isinstance(points, np.ndarray):
        if points.ndim != 2 or points.shape[0] < NUM_KEYPOINTS or points.shape[1] < 2:
            return None
        try:
            arr = points[:, :2].astype(np.float64)
        except (TypeError, ValueError):
            return None
        if not np.all(np.isfinite(arr[:NUM_KEYPOINTS])):
            return None
        return arr

    try:
        points = list(points)
    except TypeError:
        return None
    if len(points) < NUM_KEYPOINTS:
        return None

    xy = []
    for p in points[:NUM_KEYPOINTS]:
        pt = _point_xy(p)
        if pt is None:
            return None
        xy.append(pt)
    return np.asarray(xy, dtype=np.float64)


def fingers_curled(xy: np.ndarray) -> bool:
    # y растёт вниз: кончик ниже основания -> палец согнут
    return bool(np.all(xy[list(FINGER_TIPS), 1] > xy[list(FINGER_BASES), 1]))


def fingers_extended(xy: np.ndarray) -> bool:
    return bool(np.all(xy[list(FINGER_TIPS), 1] < xy[list(FINGER_BASES), 1]))


def fingertips_level(xy: np.ndarray, margin: float) -> bool:
    """Кончики соседних пальцев на одной высоте (в пределах margin)."""
    tips_y = xy[list(FINGER_TIPS), 1]
    return bool(np.all(np.abs(np.diff(tips_y)) < margin))


def classify_hand(points: Sequence[Any], margin: float = THUMB_MARGIN_PX) -> GestureLabel:
    """
    Классификация позы руки по 21 точке. Порядок важен, первое совпадение выигрывает:
      thumbs_up   - большой выше основания больше чем на margin, остальные согнуты
      thumbs_down - большой ниже основания больше чем на margin, остальные согнуты
      flat_hand   - четыре пальца выпрямлены и кончики примерно на одном уровне
    Иначе unknown. Исключений не бросает.
    """
    xy = keypoints_to_array(points)
    if xy is None:
        return GestureLabel.UNKNOWN

    thumb_tip_y = xy[THUMB_TIP, 1]
    thumb_base_y = xy[THUMB_BASE, 1]
    curled = fingers_curled(xy)

    if curled and thumb_tip_y < thumb_base_y - margin:
        return GestureLabel.THUMBS_UP

    if curled and thumb_tip_y > thumb_base_y + margin:
        return GestureLabel.THUMBS_DOWN

    if fingers_extended(xy) and fingertips_level(xy, margin):
        return GestureLabel.FLAT_HAND

    return GestureLabel.UNKNOWN
