import numpy as np
import pytest
from pydantic import ValidationError

from facefeed.models import (
    EMOTIONS, EmotionResult, FaceRegion, Frame, NormalizedRect, Overlay, OverlayShape, Point,
    normalize_emotion,
)

def test_normalize_emotion():
    assert normalize_emotion("Happy") == "happy"
    assert normalize_emotion("anger") == "angry"
    assert normalize_emotion("surprised") == "surprise"
    assert normalize_emotion("confused") is None
    assert normalize_emotion(None) is None
    assert set(EMOTIONS) >= {"happy", "sad", "neutral"}

def test_frame_is_read_only_copy():
    img = np.zeros((4, 6, 3), dtype=np.uint8)
    f = Frame.from_image(img, source_kind="still")
    assert (f.width, f.height) == (6, 4)
    assert not f.image.flags.writeable
    img[0, 0, 0] = 255  # the source buffer stays independent
    assert f.image[0, 0, 0] == 0
    with pytest.raises(ValueError):
        f.image[0, 0, 0] = 1

def test_models_are_frozen():
    face = FaceRegion(box=NormalizedRect(x=0.1, y=0.2, width=0.3, height=0.4),
                      landmarks={"nose": [Point(x=0.5, y=0.5)]})
    with pytest.raises(ValidationError):
        face.box = NormalizedRect(x=0, y=0, width=1, height=1)
    assert EmotionResult(label="sad").confidence is None

def test_overlay_shape_payload():
    shape = OverlayShape(kind="polyline", points=((1.0, 2.0), (3.0, 4.0)), stroke=(0, 255, 0))
    body = shape.to_payload()
    assert body["kind"] == "polyline"
    assert body["geometry"] == [[1.0, 2.0], [3.0, 4.0]]
    assert body["style"]["stroke"] == [0, 255, 0] and body["style"]["closed"] is True
    assert Overlay().shapes == () and Overlay().label is None
