import cv2
import numpy as np
import pytest


@pytest.fixture
def blank_frame_image():
    return np.zeros((300, 300, 3), dtype=np.uint8)


@pytest.fixture
def still_image_path(tmp_path):
    """A small synthetic 'face' picture written with OpenCV."""
    img = np.full((120, 160, 3), 200, dtype=np.uint8)
    cv2.circle(img, (80, 60), 30, (90, 140, 200), -1)
    path = tmp_path / "face.png"
    assert cv2.imwrite(str(path), img)
    return path
