"""Normalized -> view-space coordinate transforms.

Detector boxes are normalized with a bottom-left origin; the view is top-left.
Which transform applies depends on the frame source:

- live camera: aspect-fill (scale up and crop), mirrored for the front camera
- still image: aspect-fit (scale down and letterbox), never mirrored

The pipeline coordinator picks the transform; the renderer only receives
display-space geometry.
"""
from __future__ import annotations

from typing import Iterable, List, Literal, Tuple

import cv2
import numpy as np

from facefeed.models import DisplayRect, NormalizedRect, Point

Gravity = Literal["fill", "fit"]


class ViewTransform:
    """Maps normalized frame boxes into a view of fixed size."""

    def __init__(self,
                 frame_size: Tuple[int, int],
                 view_size: Tuple[int, int],
                 gravity: Gravity = "fill",
                 mirrored: bool = False):
        fw, fh = frame_size
        vw, vh = view_size
        if fw <= 0 or fh <= 0 or vw <= 0 or vh <= 0:
            raise ValueError(f"invalid sizes frame={frame_size} view={view_size}")
        self.frame_size = (int(fw), int(fh))
        self.view_size = (int(vw), int(vh))
        self.gravity = gravity
        self.mirrored = bool(mirrored)

        rw, rh = vw / float(fw), vh / float(fh)
        self.scale = max(rw, rh) if gravity == "fill" else min(rw, rh)
        self.content_width = fw * self.scale
        self.content_height = fh * self.scale
        # negative offsets mean the content is cropped (aspect-fill)
        self.offset_x = (vw - self.content_width) / 2.0
        self.offset_y = (vh - self.content_height) / 2.0

    @classmethod
    def live(cls, frame_size, view_size, mirrored: bool = True) -> "ViewTransform":
        return cls(frame_size, view_size, gravity="fill", mirrored=mirrored)

    @classmethod
    def still(cls, frame_size, view_size) -> "ViewTransform":
        return cls(frame_size, view_size, gravity="fit", mirrored=False)

    @property
    def content_rect(self) -> DisplayRect:
        """Where the frame lands in the view."""
        return DisplayRect(x=self.offset_x, y=self.offset_y,
                           width=self.content_width, height=self.content_height)

    def to_display(self, box: NormalizedRect) -> DisplayRect:
        nx = (1.0 - box.x - box.width) if self.mirrored else box.x
        ny = 1.0 - box.y - box.height  # Y flip
        return DisplayRect(
            x=self.offset_x + nx * self.content_width,
            y=self.offset_y + ny * self.content_height,
            width=box.width * self.content_width,
            height=box.height * self.content_height,
        )

    def render_canvas(self, image: np.ndarray) -> np.ndarray:
        """Lay out a frame in the view with the same geometry as to_display()."""
        vw, vh = self.view_size
        cw = max(1, int(round(self.content_width)))
        ch = max(1, int(round(self.content_height)))
        resized = cv2.resize(image, (cw, ch), interpolation=cv2.INTER_AREA)
        if self.mirrored:
            resized = cv2.flip(resized, 1)

        canvas = np.zeros((vh, vw) + image.shape[2:], dtype=image.dtype)
        ox, oy = int(round(self.offset_x)), int(round(self.offset_y))
        dx0, dy0 = max(0, ox), max(0, oy)
        sx0, sy0 = dx0 - ox, dy0 - oy
        w = min(vw - dx0, cw - sx0)
        h = min(vh - dy0, ch - sy0)
        if w > 0 and h > 0:
            canvas[dy0:dy0 + h, dx0:dx0 + w] = resized[sy0:sy0 + h, sx0:sx0 + w]
        return canvas

    def __repr__(self) -> str:
        return (f"ViewTransform(frame={self.frame_size}, view={self.view_size}, "
                f"gravity={self.gravity!r}, mirrored={self.mirrored})")


def landmark_to_display(point: Point, face_box: DisplayRect,
                        swap_axes: bool = True, mirrored: bool = False) -> Tuple[float, float]:
    """Place one face-relative landmark point in view space.

    With swap_axes (the landmark detector's native convention) the point's
    axes are exchanged relative to image axes:

        x = p.y * face_box.height + face_box.x
        y = p.x * face_box.width  + face_box.y

    Otherwise points use image axes (top-left, relative to the box) and
    mirrored flips them horizontally to follow a mirrored view.
    """
    if swap_axes:
        return (point.y * face_box.height + face_box.x,
                point.x * face_box.width + face_box.y)
    px = 1.0 - point.x if mirrored else point.x
    return (px * face_box.width + face_box.x,
            point.y * face_box.height + face_box.y)


def landmarks_to_display(points: Iterable[Point], face_box: DisplayRect,
                         swap_axes: bool = True, mirrored: bool = False) -> List[Tuple[float, float]]:
    return [landmark_to_display(p, face_box, swap_axes, mirrored) for p in points]
