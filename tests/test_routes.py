import time

import numpy as np
import pytest
from fastapi.testclient import TestClient

import api.routes as routes
import facefeed.live as live
from api.main import app
from facefeed.config import Settings
from facefeed.detectors import EmotionClassifier, FaceDetector
from facefeed.models import EmotionResult, FaceRegion, NormalizedRect


class StubDetector(FaceDetector):
    def detect(self, frame):
        return [FaceRegion(box=NormalizedRect(x=0.1, y=0.1, width=0.5, height=0.5))]


class StubClassifier(EmotionClassifier):
    def classify(self, frame):
        return EmotionResult(label="happy", confidence=0.8)


class DummyCap:
    def __init__(self, opened=True):
        self.opened = opened
    def isOpened(self): return self.opened
    def read(self):
        time.sleep(0.005)
        return True, np.zeros((240, 320, 3), dtype=np.uint8)
    def release(self): pass


@pytest.fixture
def stub_backends(monkeypatch):
    monkeypatch.setattr(live, "build_face_detector", lambda s, **kw: StubDetector())
    monkeypatch.setattr(live, "build_emotion_classifier", lambda s: StubClassifier())


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "live": False}


def test_analyze_image(client, stub_backends, still_image_path):
    with still_image_path.open("rb") as f:
        r = client.post("/analyze/image", files={"file": (still_image_path.name, f, "image/png")})
    assert r.status_code == 200
    j = r.json()
    assert j["label"] == "Emotion: happy"
    assert j["faces"] == 1
    assert [s["kind"] for s in j["shapes"]] == ["rect"]
    assert j["shapes"][0]["style"]["stroke"] == [0, 255, 255]


def test_analyze_image_rejects_undecodable_upload(client, stub_backends):
    r = client.post("/analyze/image", files={"file": ("junk.png", b"not an image", "image/png")})
    assert r.status_code == 400


def test_live_start_without_camera(client, monkeypatch):
    monkeypatch.setattr(live.cv2, "VideoCapture", lambda idx: DummyCap(opened=False))
    monkeypatch.setattr(routes, "live_session", live.LiveSession(Settings(), StubDetector(), StubClassifier()))
    r = client.post("/live/start")
    assert r.status_code == 503
    assert client.get("/live/status").json()["running"] is False


def test_live_start_status_stop(client, monkeypatch):
    monkeypatch.setattr(live.cv2, "VideoCapture", lambda idx: DummyCap())
    monkeypatch.setattr(routes, "live_session", live.LiveSession(Settings(), StubDetector(), StubClassifier()))

    r = client.post("/live/start")
    assert r.status_code == 200 and r.json()["status"] == "started"
    assert client.post("/live/start").json()["status"] == "already_running"

    body = client.get("/live/status").json()
    assert body["running"] is True
    assert "overlay" in body and "stats" in body

    assert client.post("/live/stop").json()["status"] == "stopped"
    assert client.post("/live/stop").json()["status"] == "not_running"


def test_shutdown_stops_live_session(monkeypatch):
    monkeypatch.setattr(live.cv2, "VideoCapture", lambda idx: DummyCap())
    session = live.LiveSession(Settings(), StubDetector(), StubClassifier())
    monkeypatch.setattr(routes, "live_session", session)
    with TestClient(app) as c:
        assert c.post("/live/start").json()["status"] == "started"
        assert c.get("/health").json()["live"] is True
    assert not session.running
