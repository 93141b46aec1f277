from __future__ import annotations

import os
import time
from pathlib import Path
from typing import List, Optional

import numpy as np
import mediapipe as mp

from flashgest.backend.core.exceptions import GestureUnavailableError
from flashgest.backend.ml.keypoints import DetectedHand

MODEL_FILE = "hand_landmarker.task"
MODEL_ENV = "FLASHGEST_HAND_TASK_PATH"


def find_model(path: Optional[str] = None) -> Path:
    """Явный путь или $FLASHGEST_HAND_TASK_PATH, иначе корень репозитория, папка ml, cwd."""
    given = path or os.getenv(MODEL_ENV, "").strip()
    if given:
        p = Path(given).expanduser()
        if not p.is_file():
            raise GestureUnavailableError(f"{MODEL_FILE} not found at {p}")
        return p.resolve()

    ml_dir = Path(__file__).resolve().parent
    for folder in (ml_dir.parents[2], ml_dir, Path.cwd()):
        if (folder / MODEL_FILE).is_file():
            return (folder / MODEL_FILE).resolve()

    raise GestureUnavailableError(f"{MODEL_FILE} not found, set {MODEL_ENV}")


class HandPoseSession:
    """
    Сессия MediaPipe HandLandmarker (режим VIDEO).
    Отдаёт руки с 21 точкой в пикселях кадра, классификатор их дальше интерпретирует.
    Создавать, вызывать и закрывать из одного потока.
    """
    def __init__(
        self,
        model_path: Optional[str] = None,
        num_hands: int = 1,
        min_hand_detection_confidence: float = 0.5,
        min_hand_presence_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        self.model_path = find_model(model_path)
        self.num_hands = num_hands

        BaseOptions = mp.tasks.BaseOptions
        HandLandmarker = mp.tasks.vision.HandLandmarker
        HandLandmarkerOptions = mp.tasks.vision.HandLandmarkerOptions
        RunningMode = mp.tasks.vision.RunningMode

        options = HandLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=str(self.model_path)),
            running_mode=RunningMode.VIDEO,
            num_hands=num_hands,
            min_hand_detection_confidence=min_hand_detection_confidence,
            min_hand_presence_confidence=min_hand_presence_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

        try:
            self._landmarker = HandLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise GestureUnavailableError(f"hand landmarker failed to load: {e}") from e

        self._last_ts_ms = 0

    @classmethod
    def from_config(cls, config: dict) -> "HandPoseSession":
        det = config["detector"]
        return cls(
            num_hands=int(det["num_hands"]),
            min_hand_detection_confidence=float(det["min_hand_detection_confidence"]),
            min_hand_presence_confidence=float(det["min_hand_presence_confidence"]),
            min_tracking_confidence=float(det["min_tracking_confidence"]),
        )

    def close(self) -> None:
        self._landmarker.close()

    def detect(self, frame_bgr: np.ndarray, ts_ms: Optional[int] = None) -> List[DetectedHand]:
        """
        frame_bgr: np.ndarray (H,W,3), uint8
        ts_ms: timestamp в миллисекундах. Если None, берём time.monotonic().
        """
        if frame_bgr is None or frame_bgr.ndim != 3 or frame_bgr.shape[2] != 3:
            return []

        if ts_ms is None:
            ts_ms = int(time.monotonic() * 1000)
        # detect_for_video принимает только строго растущие метки
        ts_ms = max(int(ts_ms), self._last_ts_ms + 1)
        self._last_ts_ms = ts_ms

        h, w = frame_bgr.shape[:2]
        frame_rgb = frame_bgr[:, :, ::-1].copy()

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
        result = self._landmarker.detect_for_video(mp_image, ts_ms)

        hands = []
        for i, hand_lms in enumerate(result.hand_landmarks or []):
            # landmarks нормированы в [0, 1] -> переводим в пиксели
            xy = np.array([(lm.x * w, lm.y * h) for lm in hand_lms], dtype=np.float64)
            score = 1.0
            if result.handedness and i < len(result.handedness) and result.handedness[i]:
                score = float(result.handedness[i][0].score)
            hands.append(DetectedHand(score=score, keypoints=xy))

        return hands
