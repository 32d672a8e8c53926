# facefeed/pipeline.py
"""
Frame-processing pipeline.

Per frame:  captured -> dispatched -> {faces ready, emotion ready} -> rendered

- Each frame is fanned out to the face detector and the emotion classifier,
  each on its own single-worker executor. A detector has at most one call in
  flight; frames that arrive while it is busy skip that detector (dropped).
- Results are posted to the RenderDispatcher; only the render context touches
  the OverlayRenderer. Faces and emotion update independently.
- Errors from either collaborator are logged and leave that output as it was.
- stop() cancels: no new dispatch, in-flight calls may finish but their
  results are discarded, and the renderer is disposed.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional, Tuple

from facefeed.config import Settings
from facefeed.detectors import EmotionClassifier, FaceDetector
from facefeed.dispatch import RenderDispatcher
from facefeed.errors import PipelineError
from facefeed.models import EmotionResult, FaceRegion, Frame
from facefeed.overlay import OverlayRenderer
from facefeed.sources import FrameSource, StillImageSource
from facefeed.transforms import ViewTransform

logger = logging.getLogger(__name__)


class _Lane:
    """One detector call-site: a single worker, at most one call in flight."""

    def __init__(self, name: str):
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{name}-worker")
        self._lock = threading.Lock()
        self.inflight: Optional[Future] = None
        self.dispatched = 0
        self.dropped = 0
        self.completed = 0
        self.failures = 0

    def try_submit(self, fn: Callable, *args) -> Optional[Future]:
        with self._lock:
            if self.inflight is not None and not self.inflight.done():
                self.dropped += 1
                return None
            fut = self._executor.submit(fn, *args)
            self.inflight = fut
            self.dispatched += 1
            return fut

    def wait(self, timeout: Optional[float]) -> bool:
        fut = self.inflight
        if fut is None:
            return True
        done, _ = wait([fut], timeout=timeout)
        return bool(done)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def stats(self) -> Dict[str, int]:
        return {
            "dispatched": self.dispatched,
            "dropped": self.dropped,
            "completed": self.completed,
            "failures": self.failures,
        }


class PipelineCoordinator:
    """Coordinates capture, concurrent inference and overlay updates."""

    def __init__(self,
                 source: FrameSource,
                 face_detector: FaceDetector,
                 classifier: EmotionClassifier,
                 renderer: Optional[OverlayRenderer] = None,
                 dispatcher: Optional[RenderDispatcher] = None,
                 settings: Optional[Settings] = None):
        self.s = settings or Settings()
        self.source = source
        self.face_detector = face_detector
        self.classifier = classifier
        self.renderer = renderer or OverlayRenderer()
        self.dispatcher = dispatcher or RenderDispatcher()

        self._stopped = threading.Event()
        self._render_lock = threading.RLock()
        self._faces = _Lane("faces")
        self._emotion = _Lane("emotion")
        self._transforms: Dict[Tuple[str, int, int], ViewTransform] = {}
        self.frames_seen = 0
        self.last_faces: List[FaceRegion] = []
        self.last_emotion: Optional[EmotionResult] = None

        source.set_callback(self.on_frame)

    @property
    def view_size(self) -> Tuple[int, int]:
        return (self.s.VIEW_WIDTH, self.s.VIEW_HEIGHT)

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    # ---- lifecycle ----
    def start(self) -> None:
        """Start the frame source. DeviceUnavailable propagates to the caller."""
        if self._stopped.is_set():
            raise RuntimeError("pipeline already stopped; build a new one")
        self.source.start()
        logger.info(f"[pipeline] started source={self.source.kind} view={self.view_size}")

    def stop(self, wait_inflight: bool = True) -> None:
        """Stop issuing work; late results are discarded and the surface disposed."""
        if self._stopped.is_set():
            return
        with self._render_lock:
            self._stopped.set()
        self.source.stop()

        if wait_inflight:
            deadline = time.monotonic() + max(0.0, self.s.STOP_GRACE_SECONDS)
            for lane in (self._faces, self._emotion):
                if not lane.wait(max(0.0, deadline - time.monotonic())):
                    logger.warning(f"[pipeline] {lane.name} call still running at stop; result will be discarded")
        self._faces.shutdown()
        self._emotion.shutdown()

        with self._render_lock:
            self.renderer.dispose()
        logger.info(f"[pipeline] stopped stats={self.stats()}")

    # ---- frame path (frame-delivery context) ----
    def transform_for(self, frame: Frame) -> ViewTransform:
        key = (frame.source_kind, frame.width, frame.height)
        tr = self._transforms.get(key)
        if tr is None:
            if frame.source_kind == "still":
                tr = ViewTransform.still(frame.size, self.view_size)
            else:
                tr = ViewTransform.live(frame.size, self.view_size, mirrored=self.source.mirrored)
            self._transforms[key] = tr
            logger.debug(f"[pipeline] transform {tr}")
        return tr

    def on_frame(self, frame: Frame) -> None:
        if self._stopped.is_set():
            return
        self.frames_seen += 1
        transform = self.transform_for(frame)
        self._faces.try_submit(self._run_faces, frame, transform)
        self._emotion.try_submit(self._run_emotion, frame)

    # ---- worker contexts ----
    def _run_faces(self, frame: Frame, transform: ViewTransform) -> None:
        if self._stopped.is_set():
            return
        try:
            faces = self.face_detector.detect(frame)
        except PipelineError as e:
            self._faces.failures += 1
            logger.warning(f"[pipeline] face detection failed on frame {frame.index}: {e}")
            return
        except Exception:
            self._faces.failures += 1
            logger.exception(f"[pipeline] face detector raised on frame {frame.index}")
            return
        self._faces.completed += 1
        swap = self.face_detector.swaps_landmark_axes
        self.dispatcher.post(lambda: self._apply_faces(faces, transform, swap))

    def _run_emotion(self, frame: Frame) -> None:
        if self._stopped.is_set():
            return
        try:
            result = self.classifier.classify(frame)
        except PipelineError as e:
            self._emotion.failures += 1
            logger.warning(f"[pipeline] emotion classification failed on frame {frame.index}: {e}")
            return
        except Exception:
            self._emotion.failures += 1
            logger.exception(f"[pipeline] emotion classifier raised on frame {frame.index}")
            return
        self._emotion.completed += 1
        self.dispatcher.post(lambda: self._apply_emotion(result))

    # ---- render context ----
    def _apply_faces(self, faces: List[FaceRegion], transform: ViewTransform, swap_axes: bool) -> None:
        with self._render_lock:
            if self._stopped.is_set():
                return
            self.last_faces = list(faces)
            self.renderer.render_faces(faces, transform, swap_axes=swap_axes)

    def _apply_emotion(self, result: EmotionResult) -> None:
        with self._render_lock:
            if self._stopped.is_set():
                return
            self.last_emotion = result
            self.renderer.set_label(result.label)

    # ---- still-image path ----
    def process_still(self) -> Optional[Frame]:
        """Load the still image and dispatch its single frame."""
        if not isinstance(self.source, StillImageSource):
            raise TypeError("process_still() needs a StillImageSource")
        self.start()
        self.dispatcher.post(self._apply_loading)
        return self.source.read()

    def _apply_loading(self) -> None:
        with self._render_lock:
            if not self._stopped.is_set():
                self.renderer.set_label("Loading...")

    def wait_idle(self, timeout: Optional[float] = None,
                  which: Tuple[str, ...] = ("faces", "emotion")) -> bool:
        """Block until the named detectors have no call in flight."""
        lanes = {"faces": self._faces, "emotion": self._emotion}
        deadline = None if timeout is None else time.monotonic() + timeout
        for lane in (lanes[name] for name in which):
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not lane.wait(remaining):
                return False
        return True

    def stats(self) -> Dict[str, object]:
        return {
            "frames_seen": self.frames_seen,
            "faces": self._faces.stats(),
            "emotion": self._emotion.stats(),
        }
