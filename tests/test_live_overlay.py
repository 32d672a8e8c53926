import time

import numpy as np
import pytest

import facefeed.live as live
from facefeed.config import Settings
from facefeed.detectors import EmotionClassifier, FaceDetector
from facefeed.errors import DeviceUnavailable
from facefeed.models import EmotionResult, FaceRegion, NormalizedRect, Point


class DummyCap:
    def __init__(self, opened=True):
        self.opened = opened
        self.released = False
    def isOpened(self): return self.opened
    def read(self):
        time.sleep(0.005)
        return True, np.zeros((240, 320, 3), dtype=np.uint8)
    def release(self): self.released = True


class DummyDetector(FaceDetector):
    swaps_landmark_axes = True
    def detect(self, frame):
        return [FaceRegion(box=NormalizedRect(x=0.25, y=0.25, width=0.5, height=0.5),
                           landmarks={"nose": [Point(x=0.5, y=0.5), Point(x=0.6, y=0.5)]})]


class DummyClassifier(EmotionClassifier):
    def classify(self, frame):
        return EmotionResult(label="neutral")


def test_run_live_overlay_monkeypatch(monkeypatch):
    cap = DummyCap()
    monkeypatch.setattr(live.cv2, "VideoCapture", lambda idx: cap)
    shown = []
    monkeypatch.setattr(live.cv2, "imshow", lambda name, img: shown.append(img))
    monkeypatch.setattr(live.cv2, "destroyAllWindows", lambda: None)
    calls = {"n": 0}

    def fake_waitKey(delay):
        calls["n"] += 1
        time.sleep(0.02)
        return ord("q") if calls["n"] > 15 else -1
    monkeypatch.setattr(live.cv2, "waitKey", fake_waitKey)

    s = Settings(VIEW_WIDTH=200, VIEW_HEIGHT=100)
    stats = live.run_live_overlay(s, camera_index=0, face_detector=DummyDetector(), classifier=DummyClassifier())

    assert cap.released
    assert shown and all(img.shape == (100, 200, 3) for img in shown)
    assert stats["frames_seen"] > 0
    assert stats["faces"]["completed"] > 0
    # overlays painted onto at least one displayed frame
    assert any(img.max() > 0 for img in shown)


def test_run_live_overlay_without_camera(monkeypatch):
    monkeypatch.setattr(live.cv2, "VideoCapture", lambda idx: DummyCap(opened=False))
    with pytest.raises(DeviceUnavailable):
        live.run_live_overlay(Settings(), face_detector=DummyDetector(), classifier=DummyClassifier())


def test_analyze_still_image_payload(still_image_path):
    s = Settings(VIEW_WIDTH=320, VIEW_HEIGHT=320)
    body = live.analyze_still_image(str(still_image_path), s,
                                    face_detector=DummyDetector(), classifier=DummyClassifier())
    assert body["label"] == "Emotion: neutral"
    assert body["emotion"] == "neutral" and body["faces"] == 1
    kinds = [sh["kind"] for sh in body["shapes"]]
    assert kinds == ["rect", "polyline"]
    # 160x120 fit into 320x320: content at y=40, 320x240
    assert body["content_rect"] == pytest.approx({"x": 0, "y": 40, "width": 320, "height": 240})
    assert body["shapes"][0]["geometry"][0] == pytest.approx([80, 100])


def test_run_still_overlay_shows_view(monkeypatch, still_image_path):
    shown = []
    monkeypatch.setattr(live.cv2, "imshow", lambda name, img: shown.append(img))
    monkeypatch.setattr(live.cv2, "waitKey", lambda d: 27)
    monkeypatch.setattr(live.cv2, "destroyAllWindows", lambda: None)
    s = Settings(VIEW_WIDTH=320, VIEW_HEIGHT=320)
    body = live.run_still_overlay(s, str(still_image_path),
                                  face_detector=DummyDetector(), classifier=DummyClassifier())
    assert len(shown) == 1 and shown[0].shape == (320, 320, 3)
    assert body["label"] == "Emotion: neutral"


def test_run_still_overlay_requires_path():
    with pytest.raises(ValueError):
        live.run_still_overlay(Settings(STILL_IMAGE_PATH=None))


def test_live_session_lifecycle(monkeypatch):
    monkeypatch.setattr(live.cv2, "VideoCapture", lambda idx: DummyCap())
    session = live.LiveSession(Settings(), face_detector=DummyDetector(), classifier=DummyClassifier())
    assert session.start() is True
    assert session.start() is False
    deadline = time.monotonic() + 3
    while time.monotonic() < deadline:
        st = session.status()
        if st["overlay"]["label"] and st["overlay"]["shapes"]:
            break
        time.sleep(0.02)
    assert st["running"] and st["overlay"]["label"] == "Emotion: neutral"
    assert session.stop() is True
    assert session.stop() is False
    assert session.status() == {"running": False, "started_at": None}


def test_still_path_builds_detector_for_single_images(monkeypatch, still_image_path):
    seen = []

    def fake_build(settings, static_image=False):
        seen.append(static_image)
        return DummyDetector()
    monkeypatch.setattr(live, "build_face_detector", fake_build)
    live.analyze_still_image(str(still_image_path), Settings(), classifier=DummyClassifier())
    assert seen == [True]
