"""
Tests for the Flask server behind the browser demo.
"""

import cv2
import pytest

from webcam_demo.app import create_app


def _jpeg(frame):
    ok, buf = cv2.imencode(".jpg", frame)
    assert ok
    return buf.tobytes()


@pytest.fixture
def client(controller):
    controller.set_video_playing(False)
    app = create_app(controller)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def playing(client):
    assert client.post("/video", json={"playing": True}).status_code == 200
    return client


class TestPages:

    def test_index(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert b"<video" in resp.data

    def test_classes(self, client):
        data = client.get("/classes").get_json()
        assert [c["name"] for c in data["classes"]] == ["phone", "pen", "peace sign"]
        assert [c["index"] for c in data["classes"]] == [0, 1, 2]
        assert data["threshold"] == 0.7

    def test_status(self, client):
        data = client.get("/status").get_json()
        assert data["running"] is True
        assert data["video_playing"] is False
        assert data["training"] == -1
        assert data["counts"] == [0, 0, 0]


class TestButtons:

    def test_train_and_release(self, client, controller):
        assert client.post("/train/1").get_json() == {"training": 1}
        assert controller.training == 1
        assert client.post("/release").get_json() == {"training": -1}
        assert controller.training == -1

    @pytest.mark.parametrize("path", ["/train/3", "/train/-1", "/train/phone"])
    def test_train_rejects_bad_index(self, client, controller, path):
        resp = client.post(path)
        assert resp.status_code == 400
        assert "error" in resp.get_json()
        assert controller.training == -1

    @pytest.mark.parametrize("body", [{}, {"playing": "false"}, {"playing": 1}, {"playing": None}])
    def test_video_requires_boolean_flag(self, client, controller, body):
        controller.set_video_playing(True)
        resp = client.post("/video", json=body)
        assert resp.status_code == 400
        assert "error" in resp.get_json()
        assert controller.video_playing

    def test_quick_tap_ends_released(self, client, controller):
        client.post("/train/0")
        client.post("/release")
        assert controller.training == -1

    def test_page_orders_button_requests(self, client):
        html = client.get("/").data.decode("utf-8")
        assert "buttonChain = buttonChain.then(() => post(url))" in html
        assert "send(`/train/${cls.index}`)" in html
        assert "send('/release')" in html

    def test_video_toggle(self, client, controller):
        client.post("/video", json={"playing": True})
        assert controller.video_playing
        client.post("/video", json={"playing": False})
        assert not controller.video_playing


class TestFrames:

    def test_skipped_while_paused(self, client, red):
        client.post("/train/0")
        data = client.post("/frame", data=_jpeg(red)).get_json()
        assert data == {"skipped": True}
        assert client.get("/status").get_json()["counts"] == [0, 0, 0]

    def test_undecodable_frame(self, playing):
        resp = playing.post("/frame", data=b"not a jpeg")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "could not decode image"

    def test_empty_frame(self, playing):
        assert playing.post("/frame", data=b"").status_code == 400

    def test_no_prediction_before_training(self, playing, red):
        data = playing.post("/frame", data=_jpeg(red)).get_json()
        assert data["counts"] == [0, 0, 0]
        assert data["prediction_text"] is None
        assert data["class_index"] is None

    def test_train_then_predict(self, playing, red):
        playing.post("/train/0")
        for _ in range(3):
            data = playing.post("/frame", data=_jpeg(red)).get_json()
        assert data["counts"] == [3, 0, 0]
        assert data["info_texts"][0] == " 3 examples"
        assert data["prediction_text"] == "That looks like a phone"

        playing.post("/release")
        data = playing.post("/frame", data=_jpeg(red)).get_json()
        assert data["counts"] == [3, 0, 0]
        assert data["class_index"] == 0
