"""
Face detector and emotion classifier adapters.

Both collaborators are black boxes behind a one-method interface:
- FaceDetector.detect(frame) -> list[FaceRegion]
- EmotionClassifier.classify(frame) -> EmotionResult

Backends are imported lazily (DeepFace pulls in TensorFlow) so tests can
monkeypatch sys.modules['deepface'] / sys.modules['mediapipe'].
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np

from facefeed.config import Settings
from facefeed.errors import ClassificationFailure, DetectionFailure, ModelLoadFailure
from facefeed.models import (
    EmotionResult, FaceRegion, Frame, NormalizedRect, Point, normalize_emotion,
)
from facefeed.sources import to_bgr

logger = logging.getLogger(__name__)


class FaceDetector(ABC):
    # True when landmark points come with x/y exchanged relative to image axes
    swaps_landmark_axes: bool = False

    @abstractmethod
    def detect(self, frame: Frame) -> List[FaceRegion]:
        ...


class EmotionClassifier(ABC):
    @abstractmethod
    def classify(self, frame: Frame) -> EmotionResult:
        ...


def _import_deepface():
    try:
        from deepface import DeepFace
    except Exception as e:
        raise ModelLoadFailure("DeepFace import failed. Install/align deepface/tensorflow.") from e
    return DeepFace


def clamp_pixel_box(x: float, y: float, w: float, h: float,
                    frame_w: int, frame_h: int) -> Tuple[float, float, float, float]:
    """Intersect a top-left pixel box with the frame."""
    x0 = max(0.0, min(float(x), frame_w)); y0 = max(0.0, min(float(y), frame_h))
    x1 = max(x0, min(float(x) + float(w), frame_w)); y1 = max(y0, min(float(y) + float(h), frame_h))
    return x0, y0, x1 - x0, y1 - y0


def pixel_box_to_normalized(x: float, y: float, w: float, h: float,
                            frame_w: int, frame_h: int) -> NormalizedRect:
    """Top-left pixel box -> bottom-left normalized box, clamped to the frame."""
    x0, y0, cw, ch = clamp_pixel_box(x, y, w, h, frame_w, frame_h)
    return NormalizedRect(
        x=x0 / frame_w,
        y=1.0 - (y0 + ch) / frame_h,
        width=cw / frame_w,
        height=ch / frame_h,
    )


def _box_relative(px: float, py: float, x: float, y: float, w: float, h: float) -> Point:
    return Point(x=(px - x) / max(w, 1e-6), y=(py - y) / max(h, 1e-6))


# -----------------------------------------------------------------------------
# DeepFace
# -----------------------------------------------------------------------------
class DeepFaceFaceDetector(FaceDetector):
    """Face boxes from DeepFace.extract_faces; eye centers as one-point landmark groups."""

    def __init__(self, detector_backend: str = "opencv", min_size: int = 0):
        self.detector_backend = detector_backend
        self.min_size = int(min_size)

    def detect(self, frame: Frame) -> List[FaceRegion]:
        DeepFace = _import_deepface()
        W, H = frame.size
        try:
            dets = DeepFace.extract_faces(
                img_path=to_bgr(frame),
                detector_backend=self.detector_backend,
                enforce_detection=False,
                align=False,
            )
        except Exception as e:
            raise DetectionFailure(f"DeepFace.extract_faces failed: {e}") from e

        faces: List[FaceRegion] = []
        for d in dets or []:
            fa = (d or {}).get("facial_area") or {}
            x, y = int(fa.get("x", 0)), int(fa.get("y", 0))
            w, h = int(fa.get("w", 0)), int(fa.get("h", 0))
            conf = d.get("confidence")
            if w <= 0 or h <= 0 or w < self.min_size or h < self.min_size:
                continue
            # with enforce_detection=False DeepFace returns the whole frame when nothing is found
            if (w >= W and h >= H) and not conf:
                continue

            # landmarks are placed relative to the box that is actually drawn
            bx, by, bw, bh = clamp_pixel_box(x, y, w, h, W, H)
            if bw <= 0 or bh <= 0:
                continue
            landmarks: Dict[str, List[Point]] = {}
            for key, group in (("left_eye", "leftEye"), ("right_eye", "rightEye")):
                eye = fa.get(key)
                if eye is not None and len(eye) == 2:
                    landmarks[group] = [_box_relative(eye[0], eye[1], bx, by, bw, bh)]

            faces.append(FaceRegion(
                box=pixel_box_to_normalized(bx, by, bw, bh, W, H),
                landmarks=landmarks,
                confidence=float(conf) if conf is not None else None,
            ))
        logger.debug(f"[detect] frame={frame.index} faces={len(faces)}")
        return faces


class DeepFaceEmotionClassifier(EmotionClassifier):
    def __init__(self, detector_backend: str = "opencv"):
        self.detector_backend = detector_backend

    def classify(self, frame: Frame) -> EmotionResult:
        DeepFace = _import_deepface()
        try:
            res = DeepFace.analyze(
                img_path=to_bgr(frame),
                actions=["emotion"],
                enforce_detection=False,
                detector_backend=self.detector_backend,
                silent=True,
            )
        except Exception as e:
            raise ClassificationFailure(f"DeepFace.analyze failed: {e}") from e

        res = res if isinstance(res, list) else [res]
        r0 = res[0] if res else {}
        if not isinstance(r0, dict):
            raise ClassificationFailure(f"unexpected DeepFace result: {type(r0).__name__}")

        probs = r0.get("emotion") if isinstance(r0.get("emotion"), dict) else None
        raw = r0.get("dominant_emotion")
        if not raw and probs:
            raw = max(probs, key=probs.get)
        if not raw:
            raise ClassificationFailure("DeepFace returned no emotion")
        label = normalize_emotion(raw)
        if label is None:
            raise ClassificationFailure(f"unknown emotion label from DeepFace: {raw!r}")

        confidence: Optional[float] = None
        if probs and raw in probs:
            confidence = float(probs[raw]) / 100.0
        return EmotionResult(label=label, confidence=confidence)


# -----------------------------------------------------------------------------
# MediaPipe FaceMesh (full landmark groups)
# -----------------------------------------------------------------------------
# Ordered contours over the 468-point mesh
FACEMESH_GROUPS: Dict[str, List[int]] = {
    "leftEye": [263, 249, 390, 373, 374, 380, 381, 382, 362, 398, 384, 385, 386, 387, 388, 466],
    "leftEyebrow": [276, 283, 282, 295, 285, 336, 296, 334, 293, 300],
    "rightEye": [33, 7, 163, 144, 145, 153, 154, 155, 133, 173, 157, 158, 159, 160, 161, 246],
    "rightEyebrow": [46, 53, 52, 65, 55, 107, 66, 105, 63, 70],
    "nose": [168, 6, 197, 195, 5, 4, 1, 19, 94, 2, 98, 97, 326, 327],
    "outerLips": [61, 146, 91, 181, 84, 17, 314, 405, 321, 375, 291, 409, 270, 269, 267, 0, 37, 39, 40, 185],
    "innerLips": [78, 95, 88, 178, 87, 14, 317, 402, 318, 324, 308, 415, 310, 311, 312, 13, 82, 81, 80, 191],
}


class MediaPipeFaceDetector(FaceDetector):
    """Face boxes and seven landmark groups from MediaPipe FaceMesh."""

    def __init__(self, max_faces: int = 4, min_detection_confidence: float = 0.5,
                 static_image_mode: bool = False):
        try:
            import mediapipe as mp
            self._mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=static_image_mode,
                max_num_faces=max_faces,
                min_detection_confidence=min_detection_confidence,
            )
        except Exception as e:
            raise ModelLoadFailure("MediaPipe FaceMesh unavailable. Install with: pip install mediapipe") from e
        logger.info(f"[detect] initialized MediaPipe FaceMesh static_image_mode={static_image_mode}")

    def detect(self, frame: Frame) -> List[FaceRegion]:
        rgb = frame.image if frame.pixel_format == "RGB" else cv2.cvtColor(frame.image, cv2.COLOR_BGR2RGB)
        try:
            results = self._mesh.process(rgb)
        except Exception as e:
            raise DetectionFailure(f"FaceMesh.process failed: {e}") from e

        W, H = frame.size
        faces: List[FaceRegion] = []
        for face_lms in results.multi_face_landmarks or []:
            pts = np.array([[lm.x * W, lm.y * H] for lm in face_lms.landmark], dtype=np.float64)
            x0, y0 = pts.min(axis=0)
            x1, y1 = pts.max(axis=0)
            bx, by, bw, bh = clamp_pixel_box(x0, y0, x1 - x0, y1 - y0, W, H)
            if bw <= 0 or bh <= 0:
                continue
            # points past the frame edge fall outside [0,1] of the clamped box
            landmarks = {
                name: [_box_relative(pts[i][0], pts[i][1], bx, by, bw, bh) for i in idx if i < len(pts)]
                for name, idx in FACEMESH_GROUPS.items()
            }
            faces.append(FaceRegion(box=pixel_box_to_normalized(bx, by, bw, bh, W, H), landmarks=landmarks))
        return faces

    def close(self) -> None:
        self._mesh.close()


def build_face_detector(settings: Settings, static_image: bool = False) -> FaceDetector:
    """static_image: the detector will only see unrelated single images (no tracking)."""
    if settings.FACE_BACKEND == "mediapipe":
        return MediaPipeFaceDetector(static_image_mode=static_image)
    return DeepFaceFaceDetector(detector_backend=settings.DETECTOR_BACKEND)


def build_emotion_classifier(settings: Settings) -> EmotionClassifier:
    return DeepFaceEmotionClassifier(detector_backend=settings.DETECTOR_BACKEND)
