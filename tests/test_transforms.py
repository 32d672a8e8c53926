import numpy as np
import pytest

from facefeed.models import DisplayRect, NormalizedRect, Point
from facefeed.transforms import ViewTransform, landmark_to_display, landmarks_to_display


def test_still_image_fills_view_exactly():
    # 300x300 image in a 300x300 view: no letterboxing, only the Y flip
    tr = ViewTransform.still((300, 300), (300, 300))
    rect = tr.to_display(NormalizedRect(x=0.2, y=0.3, width=0.4, height=0.4))
    assert rect.x == pytest.approx(60)
    assert rect.y == pytest.approx(90)
    assert rect.width == pytest.approx(120)
    assert rect.height == pytest.approx(120)

def test_still_image_letterbox():
    # 600x300 image fit into 300x300: scale 0.5, 75px bars top and bottom
    tr = ViewTransform.still((600, 300), (300, 300))
    assert tr.content_rect.as_tuple() == pytest.approx((0, 75, 300, 150))
    rect = tr.to_display(NormalizedRect(x=0.0, y=0.0, width=1.0, height=1.0))
    assert rect.as_tuple() == pytest.approx((0, 75, 300, 150))
    assert not tr.mirrored

def test_live_fill_crops_and_mirrors():
    # 640x480 frame filling a 480x480 view: 80px cropped each side, mirrored
    tr = ViewTransform.live((640, 480), (480, 480), mirrored=True)
    assert tr.offset_x == pytest.approx(-80)
    rect = tr.to_display(NormalizedRect(x=0.1, y=0.25, width=0.5, height=0.5))
    # mirrored x = 1 - 0.1 - 0.5 = 0.4 -> -80 + 0.4*640
    assert rect.as_tuple() == pytest.approx((176, 120, 320, 240))
    unmirrored = ViewTransform.live((640, 480), (480, 480), mirrored=False)
    assert unmirrored.to_display(NormalizedRect(x=0.1, y=0.25, width=0.5, height=0.5)).x == pytest.approx(-16)

def test_landmark_transform_swaps_axes():
    box = DisplayRect(x=60, y=90, width=120, height=80)
    p = Point(x=0.25, y=0.5)
    assert landmark_to_display(p, box) == pytest.approx((0.5 * 80 + 60, 0.25 * 120 + 90))
    assert landmark_to_display(p, box, swap_axes=False) == pytest.approx((0.25 * 120 + 60, 0.5 * 80 + 90))
    assert landmark_to_display(p, box, swap_axes=False, mirrored=True) == pytest.approx((0.75 * 120 + 60, 130))

def test_landmark_transform_is_pure():
    box = DisplayRect(x=1.5, y=2.5, width=33.0, height=44.0)
    pts = [Point(x=0.1, y=0.9), Point(x=0.7, y=0.3)]
    first = landmarks_to_display(pts, box)
    second = landmarks_to_display(pts, box)
    assert first == second
    assert pts == [Point(x=0.1, y=0.9), Point(x=0.7, y=0.3)]

def test_render_canvas_letterbox_and_mirror():
    img = np.zeros((100, 200, 3), dtype=np.uint8)
    img[:, :100] = 255  # left half white
    fit = ViewTransform.still((200, 100), (200, 200))
    canvas = fit.render_canvas(img)
    assert canvas.shape == (200, 200, 3)
    assert canvas[:50].max() == 0 and canvas[150:].max() == 0  # bars
    assert canvas[100, 10, 0] == 255 and canvas[100, 190, 0] == 0

    fill = ViewTransform.live((200, 100), (200, 100), mirrored=True)
    flipped = fill.render_canvas(img)
    assert flipped[50, 10, 0] == 0 and flipped[50, 190, 0] == 255

def test_invalid_sizes_rejected():
    with pytest.raises(ValueError):
        ViewTransform((0, 10), (10, 10))
