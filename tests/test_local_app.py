"""
Tests for the OpenCV-window front end's key handling and overlay.
"""

import numpy as np

from webcam_demo.local_app import (
    FIRST_REPEAT_TIMEOUT,
    REPEAT_TIMEOUT,
    KeyHold,
    draw_overlay,
    run,
)

NO_KEY = 255


class TestKeyHold:

    def test_idle_without_keys(self):
        keys = KeyHold()
        assert keys.update(NO_KEY, 0.0) is None

    def test_number_keys_select_classes(self):
        keys = KeyHold()
        assert keys.update(ord("1"), 0.0) == 0
        assert keys.update(ord("2"), 0.1) == 1
        assert keys.update(ord("3"), 0.2) == 2

    def test_held_through_first_repeat_delay(self):
        # X11 waits 660 ms before the first auto-repeat
        keys = KeyHold()
        keys.update(ord("1"), 0.0)
        assert keys.update(NO_KEY, 0.63) == 0
        assert keys.update(ord("1"), 0.66) == 0

    def test_held_between_repeats(self):
        keys = KeyHold()
        keys.update(ord("2"), 0.0)
        t = 0.66
        for _ in range(10):
            assert keys.update(ord("2"), t) == 1
            assert keys.update(NO_KEY, t + 0.02) == 1
            t += 0.04

    def test_unrepeated_tap_released_after_first_timeout(self):
        keys = KeyHold()
        keys.update(ord("1"), 0.0)
        assert keys.update(NO_KEY, FIRST_REPEAT_TIMEOUT + 0.01) is None

    def test_few_frames_after_release(self):
        keys = KeyHold()
        keys.update(ord("3"), 0.0)
        keys.update(ord("3"), 0.66)
        keys.update(ord("3"), 0.70)

        # poll at 30 fps once the key is let go
        trained = 0
        t = 0.70
        for _ in range(60):
            t += 1 / 30
            if keys.update(NO_KEY, t) is not None:
                trained += 1
        assert trained <= int(REPEAT_TIMEOUT * 30)
        assert keys.held is None

    def test_switching_keys_restarts_repeat_delay(self):
        keys = KeyHold()
        keys.update(ord("1"), 0.0)
        keys.update(ord("1"), 0.66)
        assert keys.update(ord("2"), 0.70) == 1
        assert keys.update(NO_KEY, 0.70 + REPEAT_TIMEOUT * 2) == 1


def test_draw_overlay_keeps_frame_shape(controller, red):
    controller.press(0)
    update = controller.step(red.copy())
    frame = np.zeros((120, 320, 3), dtype=np.uint8)
    out = draw_overlay(frame, controller, update)
    assert out is frame
    assert out.shape == (120, 320, 3)
    assert out.any()


def test_run_trains_while_key_held(controller, red, monkeypatch):
    import webcam_demo.local_app as local_app

    keys = iter([ord("1"), ord("1"), ord("q")])
    monkeypatch.setattr(local_app.cv2, "imshow", lambda *a: None)
    monkeypatch.setattr(local_app.cv2, "waitKey", lambda delay: next(keys))

    frames = [red.copy() for _ in range(5)]
    run(controller, iter(frames))

    # key '1' is seen after frames 1 and 2, so frames 2 and 3 are registered
    assert controller.classifier.get_class_example_count() == [2, 0, 0]
    assert not controller.running
