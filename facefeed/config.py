"""
Configuration for the capture / overlay pipeline.
"""
from pydantic import BaseModel
import os

_POSITIONS = ("front", "back")
_FORMATS = ("BGR", "RGB")
_ORIENTATIONS = ("up", "left", "right", "down")


class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    CAMERA_POSITION: str = os.getenv("CAMERA_POSITION", "front")
    PIXEL_FORMAT: str = os.getenv("PIXEL_FORMAT", "BGR")
    ORIENTATION: str = os.getenv("ORIENTATION", "up")
    STILL_IMAGE_PATH: str | None = os.getenv("STILL_IMAGE_PATH") or None

    VIEW_WIDTH: int = int(os.getenv("VIEW_WIDTH", "640"))
    VIEW_HEIGHT: int = int(os.getenv("VIEW_HEIGHT", "480"))

    FACE_BACKEND: str = os.getenv("FACE_BACKEND", "deepface")
    DETECTOR_BACKEND: str = os.getenv("DETECTOR_BACKEND", "opencv")
    STOP_GRACE_SECONDS: float = float(os.getenv("STOP_GRACE_SECONDS", "1.0"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __init__(self, **data):
        super().__init__(**data)
        # Normalize enum-like strings; unknown values fall back to defaults
        pos = (self.CAMERA_POSITION or "front").strip().lower()
        if pos not in _POSITIONS:
            pos = "front"
        object.__setattr__(self, "CAMERA_POSITION", pos)

        fmt = (self.PIXEL_FORMAT or "BGR").strip().upper()
        if fmt not in _FORMATS:
            fmt = "BGR"
        object.__setattr__(self, "PIXEL_FORMAT", fmt)

        ori = (self.ORIENTATION or "up").strip().lower()
        if ori not in _ORIENTATIONS:
            ori = "up"
        object.__setattr__(self, "ORIENTATION", ori)

        backend = (self.FACE_BACKEND or "deepface").strip().lower()
        if backend not in ("deepface", "mediapipe"):
            backend = "deepface"
        object.__setattr__(self, "FACE_BACKEND", backend)

    @property
    def mirrored(self) -> bool:
        """Front camera feeds are displayed mirrored."""
        return self.CAMERA_POSITION == "front"
