"""
Pydantic data models shared by sources, detectors, renderer and API.
"""
from __future__ import annotations

import time
from typing import Dict, List, Literal, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

# Closed label set produced by the emotion classifier
EMOTIONS: Tuple[str, ...] = ("angry", "disgust", "fear", "happy", "sad", "surprise", "neutral")

_EMOTION_SYNONYMS: Dict[str, str] = {
    "happiness": "happy",
    "sadness": "sad",
    "anger": "angry",
    "scared": "fear",
    "surprised": "surprise",
    "disgusted": "disgust",
}


def normalize_emotion(raw: Optional[str]) -> Optional[str]:
    """Map a raw classifier label onto EMOTIONS; None when it has no counterpart."""
    if not raw:
        return None
    key = raw.strip().lower()
    key = _EMOTION_SYNONYMS.get(key, key)
    return key if key in EMOTIONS else None


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Point(_Frozen):
    x: float
    y: float


class NormalizedRect(_Frozen):
    """Box in [0,1] frame coordinates, origin bottom-left (detector convention)."""
    x: float
    y: float
    width: float
    height: float


class DisplayRect(_Frozen):
    """Box in view coordinates, origin top-left."""
    x: float
    y: float
    width: float
    height: float

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


class FaceRegion(_Frozen):
    box: NormalizedRect
    # group name -> ordered points, normalized relative to the face box
    landmarks: Dict[str, List[Point]] = Field(default_factory=dict)
    confidence: Optional[float] = None


class EmotionResult(_Frozen):
    label: str
    confidence: Optional[float] = None


class Frame(BaseModel):
    """One captured pixel buffer with metadata. The pixel array is read-only."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    image: np.ndarray
    pixel_format: Literal["BGR", "RGB"] = "BGR"
    orientation: str = "up"
    source_kind: Literal["live", "still"] = "live"
    index: int = 0
    timestamp: float = Field(default_factory=time.time)

    @classmethod
    def from_image(cls, image: np.ndarray, **meta) -> "Frame":
        img = np.ascontiguousarray(image)
        if img is image:
            img = image.copy()
        img.setflags(write=False)
        return cls(image=img, **meta)

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)


# Colors are BGR: yellow face boxes, green landmarks, blue label
FACE_STROKE = (0, 255, 255)
LANDMARK_STROKE = (0, 255, 0)
LABEL_COLOR = (255, 0, 0)


class OverlayShape(_Frozen):
    kind: Literal["rect", "polyline"]
    points: Tuple[Tuple[float, float], ...]
    closed: bool = True
    stroke: Tuple[int, int, int] = FACE_STROKE
    fill: Optional[Tuple[int, int, int]] = None
    thickness: int = 2

    def to_payload(self) -> dict:
        return {
            "kind": self.kind,
            "geometry": [list(p) for p in self.points],
            "style": {
                "stroke": list(self.stroke),
                "fill": list(self.fill) if self.fill else None,
                "thickness": self.thickness,
                "closed": self.closed,
            },
        }


class Overlay(_Frozen):
    """The current overlay: replaced wholesale, never edited in place."""
    shapes: Tuple[OverlayShape, ...] = ()
    label: Optional[str] = None
