import asyncio
import concurrent.futures
import logging
import os
import time
from typing import Callable, Iterable, Optional

from flashgest.backend.core.enums import GestureLabel
from flashgest.backend.ml.config import load_config
from flashgest.backend.ml.debounce import GestureDebouncer
from flashgest.backend.ml.keypoints import DetectedHand, classify_hand

DEBUG_LOOP = os.getenv("FLASHGEST_GESTURE_DEBUG", "0") == "1"

UNAVAILABLE_NOTICE = "Gesture review is unavailable, rate cards with the buttons instead."

logger = logging.getLogger("gesture_loop")


def open_camera(config: dict):
    from flashgest.backend.ml.camera import Camera
    return Camera.from_config(config).open()


def open_detector(config: dict):
    from flashgest.backend.ml.detector import HandPoseSession
    return HandPoseSession.from_config(config)


class GestureLoop:
    """
    Покадровый цикл: камера -> детектор рук -> классификатор -> debouncer -> сессия.

    Камера и детектор берутся при start() и освобождаются в finally при
    любом выходе: stop(), отмена задачи или ошибка инициализации.
    Детектор создаётся, вызывается и закрывается из одного потока (executor на 1 воркер).
    """

    def __init__(
        self,
        session,
        config: Optional[dict] = None,
        camera_factory: Callable[[dict], object] = open_camera,
        detector_factory: Callable[[dict], object] = open_detector,
        on_unavailable: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.config = config or load_config()
        self._camera_factory = camera_factory
        self._detector_factory = detector_factory
        self._on_unavailable = on_unavailable
        self._clock = clock

        self.margin = float(self.config["classifier"]["margin_px"])
        self.min_confidence = float(self.config["detector"]["min_confidence"])
        self.frame_interval_s = max(0.0, self.config["stream"]["frame_interval_ms"] / 1000.0)

        self.debouncer = GestureDebouncer(
            on_gesture=session.on_gesture,
            gate=session.gesture_gate,
            cooldown_s=float(self.config["stream"]["cooldown_s"]),
            clock=clock,
        )

        self.available: Optional[bool] = None
        self._camera = None
        self._detector = None
        self.last_label = GestureLabel.UNKNOWN
        self._alive = False
        self._task: Optional[asyncio.Task] = None

        self.frames_in = 0
        self.frames_dropped = 0
        self.detect_errors = 0
        self.dispatched = 0
        self.consumer_errors = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._alive = True
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        self._alive = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def classify(self, hands: Iterable[DetectedHand]) -> GestureLabel:
        for hand in hands:
            if hand.score < self.min_confidence:
                continue
            label = classify_hand(hand.keypoints, margin=self.margin)
            if label is not GestureLabel.UNKNOWN:
                return label
        return GestureLabel.UNKNOWN

    def _notify_unavailable(self, reason: Exception) -> None:
        self.available = False
        logger.warning("gesture input unavailable: %s", reason)
        if self._on_unavailable is not None:
            self._on_unavailable(UNAVAILABLE_NOTICE)

    def _acquire(self) -> None:
        self._camera = self._camera_factory(self.config)
        self._detector = self._detector_factory(self.config)

    def _release(self) -> None:
        # выполняется в том же потоке, что и _acquire, строго после него
        detector, self._detector = self._detector, None
        camera, self._camera = self._camera, None
        if detector is not None:
            try:
                detector.close()
            except Exception:
                logger.exception("failed to close hand detector")
        if camera is not None:
            try:
                camera.release()
            except Exception:
                logger.exception("failed to release camera")

    async def run(self) -> bool:
        """
        Крутится, пока не вызван stop().
        False, если камеру или модель не удалось получить (остаются кнопки).
        """
        self._alive = True
        loop = asyncio.get_running_loop()
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        last_debug = 0.0

        try:
            try:
                await loop.run_in_executor(executor, self._acquire)
            except Exception as e:
                self._notify_unavailable(e)
                return False

            self.available = True
            self.debouncer.reset()
            logger.info("gesture loop started")

            while self._alive:
                frame = await loop.run_in_executor(executor, self._camera.read)
                if frame is None:
                    self.frames_dropped += 1
                    await asyncio.sleep(self.frame_interval_s)
                    continue
                self.frames_in += 1

                ts_ms = int(self._clock() * 1000)
                try:
                    hands = await loop.run_in_executor(executor, self._detector.detect, frame, ts_ms)
                except Exception:
                    self.detect_errors += 1
                    logger.exception("hand detection failed, skipping frame")
                    await asyncio.sleep(self.frame_interval_s)
                    continue

                self.last_label = self.classify(hands)
                try:
                    if self.debouncer.feed(self.last_label):
                        self.dispatched += 1
                except Exception:
                    self.consumer_errors += 1
                    logger.exception("gesture %s was not applied", self.last_label.value)

                now = self._clock()
                if DEBUG_LOOP and (now - last_debug) > 1.0:
                    last_debug = now
                    logger.info(
                        f"frames_in={self.frames_in} dropped={self.frames_dropped} "
                        f"errors={self.detect_errors}/{self.consumer_errors} "
                        f"dispatched={self.dispatched} "
                        f"last={self.last_label.value} state={self.debouncer.state.value}"
                    )

                await asyncio.sleep(self.frame_interval_s)

            return True

        finally:
            self._alive = False
            await loop.run_in_executor(executor, self._release)
            executor.shutdown(wait=False)
            logger.info("gesture loop stopped")
