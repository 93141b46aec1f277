from typing import Optional

import cv2
import numpy as np

from flashgest.backend.core.exceptions import GestureUnavailableError


class Camera:
    """Веб-камера через OpenCV. Открывается при активации, освобождается при деактивации."""

    def __init__(self, index: int = 0, width: int = 640, height: int = 480):
        self.index = index
        self.width = width
        self.height = height
        self._cap: Optional[cv2.VideoCapture] = None

    @classmethod
    def from_config(cls, config: dict) -> "Camera":
        cam = config["camera"]
        return cls(index=int(cam["index"]), width=int(cam["width"]), height=int(cam["height"]))

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def open(self) -> "Camera":
        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            raise GestureUnavailableError(f"camera {self.index} could not be opened")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._cap = cap
        return self

    def read(self) -> Optional[np.ndarray]:
        if self._cap is None:
            return None
        ok, frame = self._cap.read()
        if not ok:
            return None
        return frame

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.release()
