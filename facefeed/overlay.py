"""Overlay rendering.

OverlayRenderer owns the drawable state: a single immutable ``Overlay`` value
that is replaced on every mutation. All mutations must run on the render
context (see facefeed.dispatch); readers just grab ``renderer.current``.

- clear / draw_face_box / draw_landmark_group: build the shape list
- render_faces: the full replace batch for one detection result
- paint: draw the current overlay onto a BGR image with OpenCV
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from facefeed.models import (
    DisplayRect, FaceRegion, Overlay, OverlayShape,
    FACE_STROKE, LANDMARK_STROKE, LABEL_COLOR,
)
from facefeed.transforms import ViewTransform, landmarks_to_display

logger = logging.getLogger(__name__)

LABEL_PREFIX = "Emotion: "


class OverlayRenderer:
    """Holds the current overlay for one rendering surface."""

    def __init__(self):
        self._current = Overlay()
        self._disposed = False

    @property
    def current(self) -> Overlay:
        return self._current

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ---- mutations (render context only) ----
    def _swap(self, shapes: Optional[Tuple[OverlayShape, ...]] = None,
              label: Optional[str] = None, keep_label: bool = True) -> bool:
        if self._disposed:
            logger.debug("[overlay] ignoring update on disposed surface")
            return False
        cur = self._current
        self._current = Overlay(
            shapes=cur.shapes if shapes is None else shapes,
            label=cur.label if (keep_label and label is None) else label,
        )
        return True

    def clear(self) -> None:
        """Remove every shape; the label is kept."""
        self._swap(shapes=())

    def draw_face_box(self, rect: DisplayRect) -> None:
        self._swap(shapes=self._current.shapes + (_rect_shape(rect),))

    def draw_landmark_group(self, points: Sequence[Tuple[float, float]]) -> None:
        """One closed polyline per group, including groups with no points."""
        self._swap(shapes=self._current.shapes + (_landmark_shape(points),))

    def set_label(self, emotion: str) -> None:
        self._swap(label=f"{LABEL_PREFIX}{emotion}", keep_label=False)

    def render_faces(self, faces: Iterable[FaceRegion], transform: ViewTransform,
                     swap_axes: bool = True) -> None:
        """Replace all shapes with one box + one polyline per landmark group per face.

        The new shape list is published in a single swap, so readers never
        see a cleared or half-built batch.
        """
        shapes: List[OverlayShape] = []
        for face in faces:
            box = transform.to_display(face.box)
            shapes.append(_rect_shape(box))
            for points in face.landmarks.values():
                shapes.append(_landmark_shape(
                    landmarks_to_display(points, box, swap_axes, mirrored=transform.mirrored)))
        self._swap(shapes=tuple(shapes))

    def dispose(self) -> None:
        self._current = Overlay()
        self._disposed = True

    # ---- readers (any context) ----
    def to_payload(self) -> dict:
        ov = self._current
        return {"label": ov.label, "shapes": [s.to_payload() for s in ov.shapes]}

    def paint(self, image: np.ndarray) -> np.ndarray:
        """Draw the current overlay on a copy of a BGR image."""
        return paint_overlay(image, self._current)


def _rect_shape(rect: DisplayRect) -> OverlayShape:
    x, y, w, h = rect.as_tuple()
    return OverlayShape(kind="rect",
                        points=((x, y), (x + w, y), (x + w, y + h), (x, y + h)),
                        closed=True, stroke=FACE_STROKE)


def _landmark_shape(points: Sequence[Tuple[float, float]]) -> OverlayShape:
    return OverlayShape(kind="polyline",
                        points=tuple((float(px), float(py)) for px, py in points),
                        closed=True, stroke=LANDMARK_STROKE, thickness=1)


def paint_overlay(image: np.ndarray, overlay: Overlay) -> np.ndarray:
    out = image.copy()
    for shape in overlay.shapes:
        if not shape.points:
            continue
        pts = np.array([[int(round(x)), int(round(y))] for x, y in shape.points], dtype=np.int32)
        if shape.kind == "rect":
            (x0, y0), (x1, y1) = pts[0], pts[2]
            if shape.fill is not None:
                cv2.rectangle(out, (int(x0), int(y0)), (int(x1), int(y1)), shape.fill, -1)
            cv2.rectangle(out, (int(x0), int(y0)), (int(x1), int(y1)), shape.stroke, shape.thickness)
        else:
            cv2.polylines(out, [pts.reshape(-1, 1, 2)], shape.closed, shape.stroke,
                          shape.thickness, cv2.LINE_AA)

    if overlay.label:
        h, w = out.shape[:2]
        (tw, th), _ = cv2.getTextSize(overlay.label, cv2.FONT_HERSHEY_SIMPLEX, 0.7, 2)
        org = (max(0, (w - tw) // 2), min(h - 1, 20 + th))  # centered near the top
        cv2.putText(out, overlay.label, org, cv2.FONT_HERSHEY_SIMPLEX, 0.7, LABEL_COLOR, 2, cv2.LINE_AA)
    return out

