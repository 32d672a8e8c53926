"""Frame sources: a live OpenCV camera, or a single still image."""
from __future__ import annotations

import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import cv2
import numpy as np

from facefeed.config import Settings
from facefeed.errors import DeviceUnavailable
from facefeed.models import Frame

logger = logging.getLogger(__name__)

FrameCallback = Callable[[Frame], None]

_ROTATIONS = {
    "left": cv2.ROTATE_90_COUNTERCLOCKWISE,
    "right": cv2.ROTATE_90_CLOCKWISE,
    "down": cv2.ROTATE_180,
}


def prepare_image(img: np.ndarray, orientation: str = "up", pixel_format: str = "BGR") -> np.ndarray:
    """Apply the configured orientation and pixel format to a BGR capture."""
    rot = _ROTATIONS.get(orientation)
    if rot is not None:
        img = cv2.rotate(img, rot)
    if pixel_format == "RGB" and img.ndim == 3:
        img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
    return img


def to_bgr(frame: Frame) -> np.ndarray:
    if frame.pixel_format == "RGB" and frame.image.ndim == 3:
        return cv2.cvtColor(frame.image, cv2.COLOR_RGB2BGR)
    return frame.image


class FrameSource(ABC):
    """Produces frames and hands each one to a callback."""
    kind: str = "live"
    mirrored: bool = False

    def __init__(self):
        self._callback: Optional[FrameCallback] = None

    def set_callback(self, callback: Optional[FrameCallback]) -> None:
        self._callback = callback

    def _emit(self, frame: Frame) -> None:
        cb = self._callback
        if cb is None:
            return
        try:
            cb(frame)
        except Exception:
            logger.exception(f"[source] frame callback failed for frame {frame.index}")

    @property
    @abstractmethod
    def running(self) -> bool:
        ...

    @abstractmethod
    def start(self) -> None:
        """Begin producing frames. Raises DeviceUnavailable."""

    @abstractmethod
    def stop(self) -> None:
        """Stop producing frames and release capture resources."""


class CameraSource(FrameSource):
    """Continuous capture from an OpenCV device on a dedicated thread."""
    kind = "live"

    def __init__(self, settings: Settings, camera_index: Optional[int] = None):
        super().__init__()
        self.s = settings
        self.camera_index = settings.CAMERA_INDEX if camera_index is None else camera_index
        self.mirrored = settings.mirrored
        self._cap = None
        self._thread: Optional[threading.Thread] = None
        self._run = threading.Event()
        self._lock = threading.Lock()
        self._latest: Optional[Frame] = None
        self._count = 0

    @property
    def running(self) -> bool:
        return self._run.is_set()

    def start(self) -> None:
        if self._run.is_set():
            return
        cap = cv2.VideoCapture(self.camera_index)
        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise DeviceUnavailable(f"Could not open camera index {self.camera_index}")
        self._cap = cap
        self._run.set()
        self._thread = threading.Thread(target=self._loop, name="camera", daemon=True)
        self._thread.start()
        logger.info(f"[source] camera {self.camera_index} started "
                    f"(position={self.s.CAMERA_POSITION}, format={self.s.PIXEL_FORMAT})")

    def stop(self) -> None:
        self._run.clear()
        t = self._thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout=2.0)
        self._thread = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info(f"[source] camera {self.camera_index} released")

    def latest(self) -> Optional[Frame]:
        with self._lock:
            return self._latest

    def _loop(self) -> None:
        cap = self._cap
        while self._run.is_set():
            ok, img = cap.read()
            if not ok or img is None:
                logger.debug("[source] camera read failed; retrying")
                time.sleep(0.1)
                continue
            frame = Frame.from_image(
                prepare_image(img, self.s.ORIENTATION, self.s.PIXEL_FORMAT),
                pixel_format=self.s.PIXEL_FORMAT,
                orientation=self.s.ORIENTATION,
                source_kind="live",
                index=self._count,
            )
            self._count += 1
            with self._lock:
                self._latest = frame
            self._emit(frame)


class StillImageSource(FrameSource):
    """Loads one image from disk and produces exactly one frame on demand."""
    kind = "still"

    def __init__(self, path: str, settings: Optional[Settings] = None):
        super().__init__()
        self.path = str(path)
        self.s = settings or Settings()
        self._image: Optional[np.ndarray] = None
        self._produced = False

    @property
    def running(self) -> bool:
        return self._image is not None

    @property
    def image(self) -> Optional[np.ndarray]:
        return self._image

    def start(self) -> None:
        if self._image is not None:
            return
        if not os.path.exists(self.path):
            raise DeviceUnavailable(f"Image not found: {self.path}")
        img = cv2.imread(self.path, cv2.IMREAD_COLOR)
        if img is None:
            raise DeviceUnavailable(f"Could not decode image: {self.path}")
        self._image = img
        logger.debug(f"[source] loaded still image {self.path} size={img.shape[1]}x{img.shape[0]}")

    def read(self) -> Optional[Frame]:
        """Produce the single frame (and deliver it to the callback)."""
        if self._image is None:
            self.start()
        if self._produced:
            logger.debug("[source] still image already produced its frame")
            return None
        self._produced = True
        frame = Frame.from_image(
            prepare_image(self._image, "up", self.s.PIXEL_FORMAT),
            pixel_format=self.s.PIXEL_FORMAT,
            orientation="up",
            source_kind="still",
        )
        self._emit(frame)
        return frame

    def stop(self) -> None:
        self._image = None
