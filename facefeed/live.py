# facefeed/live.py
"""
Live and still-image front ends for the pipeline.

- run_live_overlay: webcam -> pipeline -> OpenCV window (press 'q' to quit)
- run_still_overlay: one image, aspect-fit in the window, overlays on top
- analyze_still_image: headless one-shot returning the overlay payload
- LiveSession: headless live pipeline with its own render thread (used by the API)

The window loop owns the render context: it drains the dispatcher before
painting each frame, so overlay state is only ever mutated on that thread.
"""
from __future__ import annotations

import logging
import time
from typing import Optional

import cv2
import numpy as np

from facefeed.config import Settings
from facefeed.detectors import (
    EmotionClassifier, FaceDetector, build_emotion_classifier, build_face_detector,
)
from facefeed.dispatch import RenderDispatcher
from facefeed.overlay import OverlayRenderer
from facefeed.pipeline import PipelineCoordinator
from facefeed.sources import CameraSource, StillImageSource, to_bgr
from facefeed.transforms import ViewTransform

logger = logging.getLogger(__name__)

LIVE_WINDOW = "Face Detection - Live (q to quit)"
STILL_WINDOW = "Face Detection - Still (any key to close)"


def _blank_view(settings: Settings) -> np.ndarray:
    return np.zeros((settings.VIEW_HEIGHT, settings.VIEW_WIDTH, 3), dtype=np.uint8)


def run_live_overlay(settings: Settings,
                     camera_index: Optional[int] = None,
                     face_detector: Optional[FaceDetector] = None,
                     classifier: Optional[EmotionClassifier] = None) -> dict:
    """
    Open the camera, run face landmarks + emotion on every frame the workers
    can take, and show the overlays until 'q' is pressed.

    Raises DeviceUnavailable if the camera cannot be opened.
    Returns the pipeline stats.
    """
    source = CameraSource(settings, camera_index=camera_index)
    dispatcher = RenderDispatcher()
    pipeline = PipelineCoordinator(
        source,
        face_detector or build_face_detector(settings),
        classifier or build_emotion_classifier(settings),
        renderer=OverlayRenderer(),
        dispatcher=dispatcher,
        settings=settings,
    )
    pipeline.start()

    try:
        while True:
            dispatcher.run_pending()
            frame = source.latest()
            if frame is None:
                view = _blank_view(settings)
            else:
                view = pipeline.transform_for(frame).render_canvas(to_bgr(frame))
            cv2.imshow(LIVE_WINDOW, pipeline.renderer.paint(view))
            if (cv2.waitKey(1) & 0xFF) == ord("q"):
                break
    finally:
        pipeline.stop()
        dispatcher.close()
        cv2.destroyAllWindows()
    return pipeline.stats()


def _run_still(settings: Settings, image_path: str,
               face_detector: Optional[FaceDetector],
               classifier: Optional[EmotionClassifier],
               timeout: float):
    source = StillImageSource(image_path, settings)
    dispatcher = RenderDispatcher()
    pipeline = PipelineCoordinator(
        source,
        face_detector or build_face_detector(settings, static_image=True),
        classifier or build_emotion_classifier(settings),
        renderer=OverlayRenderer(),
        dispatcher=dispatcher,
        settings=settings,
    )
    frame = pipeline.process_still()
    if not pipeline.wait_idle(timeout):
        logger.warning(f"[still] inference did not finish within {timeout}s")
    dispatcher.run_pending()
    return pipeline, frame


def analyze_still_image(image_path: str,
                        settings: Optional[Settings] = None,
                        face_detector: Optional[FaceDetector] = None,
                        classifier: Optional[EmotionClassifier] = None,
                        timeout: float = 30.0) -> dict:
    """Run both collaborators on one image and return the overlay payload."""
    settings = settings or Settings()
    pipeline, frame = _run_still(settings, image_path, face_detector, classifier, timeout)
    payload = pipeline.renderer.to_payload()
    payload.update({
        "image": str(image_path),
        "view": {"width": settings.VIEW_WIDTH, "height": settings.VIEW_HEIGHT},
        "faces": len(pipeline.last_faces),
        "emotion": pipeline.last_emotion.label if pipeline.last_emotion else None,
    })
    if frame is not None:
        payload["content_rect"] = pipeline.transform_for(frame).content_rect.model_dump()
    pipeline.stop(wait_inflight=False)
    pipeline.dispatcher.close()
    return payload


def run_still_overlay(settings: Settings,
                      image_path: Optional[str] = None,
                      face_detector: Optional[FaceDetector] = None,
                      classifier: Optional[EmotionClassifier] = None,
                      timeout: float = 30.0) -> dict:
    """Show one image with its overlays until a key is pressed."""
    path = image_path or settings.STILL_IMAGE_PATH
    if not path:
        raise ValueError("No still image given (set STILL_IMAGE_PATH or pass image_path)")
    pipeline, frame = _run_still(settings, path, face_detector, classifier, timeout)
    try:
        if frame is None:
            view = _blank_view(settings)
        else:
            transform: ViewTransform = pipeline.transform_for(frame)
            view = transform.render_canvas(to_bgr(frame))
        cv2.imshow(STILL_WINDOW, pipeline.renderer.paint(view))
        cv2.waitKey(0)
        return pipeline.renderer.to_payload()
    finally:
        pipeline.stop(wait_inflight=False)
        pipeline.dispatcher.close()
        cv2.destroyAllWindows()


class LiveSession:
    """Headless live pipeline: camera + workers + a dedicated render thread."""

    def __init__(self, settings: Settings,
                 face_detector: Optional[FaceDetector] = None,
                 classifier: Optional[EmotionClassifier] = None):
        self.s = settings
        self._face_detector = face_detector
        self._classifier = classifier
        self._pipeline: Optional[PipelineCoordinator] = None
        self._started_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._pipeline is not None and not self._pipeline.stopped

    def start(self) -> bool:
        """Returns False when already running. Raises DeviceUnavailable."""
        if self.running:
            return False
        dispatcher = RenderDispatcher()
        pipeline = PipelineCoordinator(
            CameraSource(self.s),
            self._face_detector or build_face_detector(self.s),
            self._classifier or build_emotion_classifier(self.s),
            dispatcher=dispatcher,
            settings=self.s,
        )
        pipeline.start()
        dispatcher.start_thread()
        self._pipeline = pipeline
        self._started_at = time.time()
        return True

    def stop(self) -> bool:
        """Returns False when nothing was running."""
        if not self.running:
            return False
        self._pipeline.stop()
        self._pipeline.dispatcher.close()
        return True

    def status(self) -> dict:
        running = self.running
        body = {"running": running, "started_at": self._started_at if running else None}
        if running:
            body["overlay"] = self._pipeline.renderer.to_payload()
            body["stats"] = self._pipeline.stats()
        return body
